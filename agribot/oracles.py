import base64
import json
import logging
import re

from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.messages import HumanMessage, SystemMessage

from .errors import ConfigurationError
from .i18n import DEFAULT_LANGUAGE, LanguageCatalog
from .models import SensorReading

logger = logging.getLogger(__name__)

CROP_PREDICTION = "crop-prediction"
AI_CHAT = "ai-chat"
YIELD_PREDICTION = "yield-prediction"
MARKET_RECOMMENDATIONS = "market-recommendations"
CROP_INSURANCE = "crop-insurance"
DISEASE_DETECTION = "disease-detection"

YIELD_TEMPERATURE = 0.3
MARKET_TEMPERATURE = 0.4
INSURANCE_TEMPERATURE = 0.3
DISEASE_TEMPERATURE = 0.3

DEFAULT_IMAGE_MIME = "image/jpeg"

SYSTEM_FRAMING = """You are AgriBot, an AI agricultural assistant. You help farmers with crop management, pest control, fertilizers, weather insights, and farming best practices.
Provide helpful, practical advice in a friendly and professional manner. Keep responses concise but informative."""

CROP_PREDICTION_PROMPT = """Based on the following soil and environmental data, recommend the best crop to plant and provide detailed analysis:

Soil nutrients:
- Nitrogen (N): {N} mg/kg
- Phosphorus (P): {P} mg/kg
- Potassium (K): {K} mg/kg
- pH: {ph}

Environmental conditions:
- Temperature: {temperature}°C
- Humidity: {humidity}%
- Rainfall: {rainfall}mm

Please provide:
1. The recommended crop
2. Confidence level (as percentage)
3. Brief reasoning for the recommendation
4. Any specific care instructions

Respond in JSON format with fields: crop, confidence, reasoning, careInstructions"""

YIELD_PREDICTION_PROMPT = """Based on the following farm parameters, predict the crop yield and provide analysis:

Farm Details:
- Area: {area} acres
- Irrigation: {irrigation}
- Fertilizer Type: {fertilizerType}
- Soil Type: {soilType}
- Season: {season}
- Water Usage: {waterUsage} liters/day

Please provide:
1. Predicted yield in tons
2. Confidence level (as percentage)
3. Tons per acre
4. Estimated revenue (assume $500 per ton)
5. Three key recommendations for improvement

Respond in JSON format with fields: predictedYield, confidence, tonsPerAcre, estimatedRevenue, recommendations (array of 3 strings)"""

MARKET_RECOMMENDATIONS_PROMPT = """Generate current market recommendations for farmers in {location} during {season} season.

Please provide:
1. Top 3 crops with high market demand
2. Current market prices per ton
3. Market trend (increasing/stable/decreasing)
4. Brief market insights

Respond in JSON format as an array of 3 objects, each with fields: crop, price, trend, insight"""

CROP_INSURANCE_PROMPT = """Based on the following farm and crop information, calculate crop insurance details:

Farm Details:
- Crop Type: {cropType}
- Area: {area} acres
- Location: {location}
- Soil Type: {soilType}
- Irrigation: {irrigationType}
- Previous Yield: {previousYield} tons/acre

Please provide:
1. Annual premium amount (in INR)
2. Coverage amount (in INR)
3. ROI protection percentage
4. Eligibility status (true/false)
5. Three key recommendations
6. Required documents (array of document names)

Consider factors like crop type, regional risk, area size, and farming practices.

Respond in JSON format with fields: premium, coverage, roi, eligibility, recommendations (array), documents (array)"""

DISEASE_DETECTION_PROMPT = """Analyze this plant image for diseases and provide detailed information:

Please identify:
1. Any diseases present in the plant
2. Confidence level (0-100%)
3. Severity level (low, medium, high)
4. Visible symptoms
5. Treatment recommendations
6. Prevention measures

Respond in JSON format with fields: disease, confidence, severity, symptoms (array), treatment (array), prevention (array)

If no disease is detected, indicate "Healthy Plant" as the disease name."""

_CODE_FENCE = re.compile(r"```(?:json)?\n?")


def initialize_llm(api_key, model, temperature, timeout=None):
    if not api_key:
        raise ConfigurationError("Gemini API key is not configured")
    llm = ChatGoogleGenerativeAI(
        model=model,
        temperature=temperature,
        google_api_key=api_key,
        timeout=timeout,
        max_retries=0,
    )
    logger.info(f"Google Gemini LLM object initialized ({model}).")
    return llm


def message_text(ai_response):
    content = ai_response.content if hasattr(ai_response, 'content') else ai_response
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        content = "".join(parts)
    return str(content or "").strip()


def describe_llm_error(e):
    err_str = str(e).lower()
    if "api key" in err_str or "api_key" in err_str or "permission" in err_str or "denied" in err_str or "authenticate" in err_str:
        return "Gemini API key was rejected"
    if "quota" in err_str or "resource has been exhausted" in err_str:
        return "Gemini API limit reached"
    if "safety" in err_str or "blocked" in err_str:
        return "Response blocked by content filter"
    return f"AI communication failure ({type(e).__name__})"


def build_chat_messages(request, catalog):
    """System framing, language instruction and grounding, then the farmer's message."""
    system_lines = [SYSTEM_FRAMING]

    language = request.get("language") or DEFAULT_LANGUAGE
    if language != catalog.default_language:
        language_name = catalog.display_name(language)
        system_lines.append("")
        system_lines.append(f"Respond ONLY in {language_name}. Your entire reply must be written in {language_name}. Do not use any other language.")

    sensor_data = request.get("sensorData")
    if sensor_data:
        reading = SensorReading.from_wire(sensor_data)
        system_lines.extend([
            "",
            "## Current field sensor readings:",
            f"- Nitrogen (N): {reading.nitrogen} mg/kg",
            f"- Phosphorus (P): {reading.phosphorus} mg/kg",
            f"- Potassium (K): {reading.potassium} mg/kg",
            f"- Soil pH: {reading.ph}",
            f"- Temperature: {reading.temperature}°C",
            f"- Humidity: {reading.humidity}%",
            f"- Rainfall: {reading.rainfall}mm",
            "Use these readings when they are relevant to the farmer's question.",
        ])

    crop = request.get("recommendedCrop")
    if crop:
        system_lines.extend([
            "",
            f"## Recommended crop for these conditions: {crop}",
            "If the farmer asks about it, explain why this crop suits the readings above.",
        ])

    return [
        SystemMessage(content="\n".join(system_lines)),
        HumanMessage(content=request["message"]),
    ]


def parse_json_reply(text):
    cleaned = _CODE_FENCE.sub("", text).strip()
    return json.loads(cleaned)


def parse_prediction(text):
    prediction = parse_json_reply(text)
    if not isinstance(prediction, dict):
        raise ValueError("prediction is not a JSON object")
    return prediction


def split_data_url(image):
    """``data:image/png;base64,XXXX`` -> ("image/png", "XXXX"); bare base64 is taken as JPEG."""
    mime_type = DEFAULT_IMAGE_MIME
    data = image
    if image.startswith("data:") and "," in image:
        header, data = image.split(",", 1)
        mime_type = header[len("data:"):].split(";")[0] or DEFAULT_IMAGE_MIME
    data = data.strip()
    base64.b64decode(data, validate=True)
    return mime_type, data


def _pick(source, keys):
    return {key: source[key] for key in keys if source.get(key) is not None}


class OracleRejection(Exception):
    """Ends a backend function with ``{"error": message}``."""


class GeminiBackend:
    """In-process versions of the backend functions.

    Each handler takes the wire request as a dict and always returns a dict:
    the success shape, or ``{"error": message}``. Nothing is raised.
    """

    def __init__(self, settings, llm_factory=initialize_llm, catalog=None):
        self.settings = settings
        self._llm_factory = llm_factory
        self.catalog = catalog or LanguageCatalog()
        self._handlers = {
            CROP_PREDICTION: self.crop_prediction,
            AI_CHAT: self.ai_chat,
            YIELD_PREDICTION: self.yield_prediction,
            MARKET_RECOMMENDATIONS: self.market_recommendations,
            CROP_INSURANCE: self.crop_insurance,
            DISEASE_DETECTION: self.disease_detection,
        }

    @property
    def functions(self):
        return list(self._handlers)

    def handler(self, name):
        return self._handlers[name]

    def _llm(self, key_name, model, temperature):
        api_key = self.settings.require(key_name)
        return self._llm_factory(api_key, model, temperature, timeout=self.settings.request_timeout)

    def _guarded(self, name, request, step):
        try:
            if not isinstance(request, dict):
                raise TypeError("request body must be an object")
            return step(request)
        except ConfigurationError as e:
            logger.error(f"{name} configuration error: {e}")
            return {"error": str(e)}
        except OracleRejection as e:
            return {"error": str(e)}
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"{name} rejected request: {e}")
            return {"error": f"Invalid request: {e}"}

    def _invoke(self, name, llm, messages):
        try:
            ai_response = llm.invoke(messages)
        except Exception as e:
            logger.error(f"Exception calling LLM for {name}: {e}", exc_info=True)
            raise OracleRejection(describe_llm_error(e)) from e
        return message_text(ai_response)

    def _invoke_json(self, name, llm, messages):
        text = self._invoke(name, llm, messages)
        try:
            return parse_json_reply(text)
        except ValueError as e:
            logger.warning(f"Could not parse {name} reply ({e}): {text[:200]!r}")
            raise OracleRejection("Model reply was not valid JSON") from e

    def _invoke_object(self, name, llm, messages):
        reply = self._invoke_json(name, llm, messages)
        if not isinstance(reply, dict):
            logger.warning(f"{name} reply is a {type(reply).__name__}, expected an object.")
            raise OracleRejection("Model reply was not a JSON object")
        return reply

    # crop-prediction

    def crop_prediction(self, request):
        return self._guarded(CROP_PREDICTION, request, self._crop_prediction)

    def _crop_prediction(self, request):
        sensor_data = request.get("reading") or request.get("sensorData")
        if not sensor_data:
            raise ValueError("Sensor data is required")
        reading = SensorReading.from_wire(sensor_data)
        llm = self._llm("prediction_api_key", self.settings.prediction_model, self.settings.prediction_temperature)

        logger.info(f"Processing crop prediction request: {reading}")
        prompt = CROP_PREDICTION_PROMPT.format(**reading.to_wire())
        prediction = self._invoke_object(CROP_PREDICTION, llm, [HumanMessage(content=prompt)])

        reply = {"crop": prediction.get("crop")}
        reply.update(_pick(prediction, ("confidence", "reasoning", "careInstructions")))
        logger.info(f"Crop prediction generated successfully: {reply.get('crop')}")
        return reply

    # ai-chat

    def ai_chat(self, request):
        return self._guarded(AI_CHAT, request, self._ai_chat)

    def _ai_chat(self, request):
        message = str(request.get("message") or "").strip()
        if not message:
            raise ValueError("Message is required")
        messages = build_chat_messages(dict(request, message=message), self.catalog)
        llm = self._llm("chat_api_key", self.settings.chat_model, self.settings.chat_temperature)

        logger.info(f"Processing AI chat request ({request.get('language') or DEFAULT_LANGUAGE}): '{message}'")
        text = self._invoke(AI_CHAT, llm, messages)
        if not text:
            logger.warning("ai-chat: model returned no text.")
            raise OracleRejection("No response generated")
        logger.info("AI response generated successfully")
        return {"response": text}

    # yield-prediction

    def yield_prediction(self, request):
        return self._guarded(YIELD_PREDICTION, request, self._yield_prediction)

    def _yield_prediction(self, request):
        farm = request.get("farmData")
        if not farm or not isinstance(farm, dict):
            raise ValueError("Farm data is required")
        prompt = YIELD_PREDICTION_PROMPT.format(
            area=farm["area"], irrigation=farm.get("irrigation", "Not specified"),
            fertilizerType=farm.get("fertilizerType", "Not specified"),
            soilType=farm.get("soilType", "Not specified"), season=farm.get("season", "Not specified"),
            waterUsage=farm.get("waterUsage", "Not specified"),
        )
        llm = self._llm("prediction_api_key", self.settings.prediction_model, YIELD_TEMPERATURE)

        logger.info(f"Processing yield prediction request: {farm}")
        prediction = self._invoke_object(YIELD_PREDICTION, llm, [HumanMessage(content=prompt)])
        reply = _pick(prediction, ("predictedYield", "confidence", "tonsPerAcre", "estimatedRevenue", "recommendations"))
        logger.info(f"Yield prediction generated successfully: {reply.get('predictedYield')}")
        return reply

    # market-recommendations

    def market_recommendations(self, request):
        return self._guarded(MARKET_RECOMMENDATIONS, request, self._market_recommendations)

    def _market_recommendations(self, request):
        location = str(request.get("location") or "").strip() or "general location"
        season = str(request.get("season") or "").strip() or "current"
        prompt = MARKET_RECOMMENDATIONS_PROMPT.format(location=location, season=season)
        llm = self._llm("prediction_api_key", self.settings.prediction_model, MARKET_TEMPERATURE)

        logger.info(f"Processing market recommendations request: location={location}, season={season}")
        reply = self._invoke_json(MARKET_RECOMMENDATIONS, llm, [HumanMessage(content=prompt)])
        if isinstance(reply, dict):
            reply = reply.get("recommendations")
        if not isinstance(reply, list):
            raise OracleRejection("Model reply did not contain a list of recommendations")
        recommendations = [item for item in reply if isinstance(item, dict)]
        logger.info(f"Market recommendations generated successfully: {len(recommendations)} crops")
        return {"recommendations": recommendations}

    # crop-insurance

    def crop_insurance(self, request):
        return self._guarded(CROP_INSURANCE, request, self._crop_insurance)

    def _crop_insurance(self, request):
        farm = request.get("farmData")
        if not farm or not isinstance(farm, dict):
            raise ValueError("Farm data is required")
        missing = [field for field in ("cropType", "area", "location") if not farm.get(field)]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")
        prompt = CROP_INSURANCE_PROMPT.format(
            cropType=farm["cropType"], area=farm["area"], location=farm["location"],
            soilType=farm.get("soilType") or "Not specified",
            irrigationType=farm.get("irrigationType") or "Not specified",
            previousYield=farm.get("previousYield") or "Not specified",
        )
        llm = self._llm("advisory_api_key", self.settings.prediction_model, INSURANCE_TEMPERATURE)

        logger.info(f"Processing crop insurance calculation: {farm}")
        quote = self._invoke_object(CROP_INSURANCE, llm, [HumanMessage(content=prompt)])
        reply = _pick(quote, ("premium", "coverage", "roi", "eligibility", "recommendations", "documents"))
        logger.info("Insurance calculation completed successfully")
        return reply

    # disease-detection

    def disease_detection(self, request):
        return self._guarded(DISEASE_DETECTION, request, self._disease_detection)

    def _disease_detection(self, request):
        image = request.get("image")
        if not image or not isinstance(image, str):
            raise ValueError("Image is required")
        mime_type, data = split_data_url(image)
        llm = self._llm("advisory_api_key", self.settings.vision_model, DISEASE_TEMPERATURE)

        logger.info(f"Processing disease detection request ({mime_type}, {len(data)} base64 chars)")
        message = HumanMessage(content=[
            {"type": "text", "text": DISEASE_DETECTION_PROMPT},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{data}"}},
        ])
        detection = self._invoke_object(DISEASE_DETECTION, llm, [message])
        reply = _pick(detection, ("disease", "confidence", "severity", "symptoms", "treatment", "prevention"))
        logger.info(f"Disease detection completed successfully: {reply.get('disease')}")
        return reply

import base64

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from agribot.config import Settings
from agribot.errors import ConfigurationError
from agribot.oracles import GeminiBackend, build_chat_messages, message_text, parse_prediction
from agribot.i18n import LanguageCatalog

from conftest import SCENARIO_A_WIRE


class FakeLLM:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.invocations = []

    def invoke(self, messages):
        self.invocations.append(messages)
        if self.error:
            raise self.error
        return AIMessage(content=self.reply)


class FakeLLMFactory:
    def __init__(self, llm):
        self.llm = llm
        self.calls = []

    def __call__(self, api_key, model, temperature, timeout=None):
        if not api_key:
            raise ConfigurationError("Gemini API key is not configured")
        self.calls.append((api_key, model, temperature, timeout))
        return self.llm


def backend_with(llm, **settings):
    settings.setdefault("gemini_api_key", "test-key")
    factory = FakeLLMFactory(llm)
    return GeminiBackend(Settings(**settings), llm_factory=factory), factory


def test_crop_prediction_parses_fenced_json():
    llm = FakeLLM('```json\n{"crop": "Rice", "confidence": 85, "reasoning": "Wet season", "careInstructions": "Keep fields flooded"}\n```')
    backend, factory = backend_with(llm)
    reply = backend.crop_prediction({"reading": SCENARIO_A_WIRE})
    assert reply == {"crop": "Rice", "confidence": 85, "reasoning": "Wet season", "careInstructions": "Keep fields flooded"}
    prompt = llm.invocations[0][0].content
    assert "Nitrogen (N): 80 mg/kg" in prompt
    assert "pH: 6.2" in prompt
    assert factory.calls[0][1] == backend.settings.prediction_model


def test_crop_prediction_accepts_legacy_sensor_data_key():
    backend, _ = backend_with(FakeLLM('{"crop": "Maize"}'))
    assert backend.crop_prediction({"sensorData": SCENARIO_A_WIRE}) == {"crop": "Maize"}


def test_crop_prediction_unparseable_reply_is_an_error():
    backend, _ = backend_with(FakeLLM("Rice would be great!"))
    reply = backend.crop_prediction({"reading": SCENARIO_A_WIRE})
    assert set(reply) == {"error"}


def test_crop_prediction_requires_reading():
    backend, factory = backend_with(FakeLLM('{"crop": "Rice"}'))
    assert "error" in backend.crop_prediction({})
    assert factory.calls == []


def test_missing_key_is_a_configuration_error_envelope(caplog):
    backend, _ = backend_with(FakeLLM("unused"), gemini_api_key=None)
    with caplog.at_level("ERROR"):
        reply = backend.ai_chat({"message": "hello"})
    assert reply == {"error": "chat_api_key is not configured"}
    assert "configuration error" in caplog.text


def test_ai_chat_prefers_secondary_key():
    backend, factory = backend_with(FakeLLM("Hi"), gemini_secondary_api_key="chat-key")
    backend.ai_chat({"message": "hello"})
    assert factory.calls[0][0] == "chat-key"


def test_ai_chat_builds_grounded_prompt():
    llm = FakeLLM("  Plant rice.  ")
    backend, _ = backend_with(llm)
    reply = backend.ai_chat({"message": "What should I grow?", "sensorData": SCENARIO_A_WIRE,
                             "recommendedCrop": "Rice", "language": "hi"})
    assert reply == {"response": "Plant rice."}
    system, human = llm.invocations[0]
    assert isinstance(system, SystemMessage)
    assert isinstance(human, HumanMessage)
    assert human.content == "What should I grow?"
    assert "Respond ONLY in Hindi" in system.content
    assert "Recommended crop for these conditions: Rice" in system.content
    assert "explain why this crop suits" in system.content
    assert "Rainfall: 180mm" in system.content


def test_default_language_has_no_language_instruction():
    messages = build_chat_messages({"message": "hello", "language": "en"}, LanguageCatalog())
    assert "Respond ONLY" not in messages[0].content
    assert "Recommended crop" not in messages[0].content
    assert "sensor readings" not in messages[0].content


@pytest.mark.parametrize("request_body", [{}, {"message": "   "}])
def test_ai_chat_requires_message(request_body):
    backend, _ = backend_with(FakeLLM("unused"))
    assert "error" in backend.ai_chat(request_body)


def test_ai_chat_empty_model_output_is_an_error():
    backend, _ = backend_with(FakeLLM(""))
    assert backend.ai_chat({"message": "hello"}) == {"error": "No response generated"}


def test_llm_failure_is_described_not_raised():
    backend, _ = backend_with(FakeLLM(error=RuntimeError("429 Resource has been exhausted (quota)")))
    assert backend.ai_chat({"message": "hello"}) == {"error": "Gemini API limit reached"}


def test_message_text_joins_content_parts():
    message = AIMessage(content=[{"type": "text", "text": "Use "}, "compost."])
    assert message_text(message) == "Use compost."


def test_parse_prediction_rejects_non_objects():
    with pytest.raises(ValueError):
        parse_prediction("[1, 2]")


def test_every_backend_function_is_routable():
    from agribot.transport import LocalTransport

    backend, _ = backend_with(FakeLLM('{"predictedYield": 25, "tonsPerAcre": 2.5}'))
    assert set(backend.functions) == {"crop-prediction", "ai-chat", "yield-prediction",
                                      "market-recommendations", "crop-insurance", "disease-detection"}
    transport = LocalTransport(backend)
    try:
        reply = transport.send("yield-prediction", {"farmData": {"area": 10}}, timeout=5)
    finally:
        transport.close()
    assert reply == {"predictedYield": 25, "tonsPerAcre": 2.5}


def test_yield_prediction_prompt_and_reply():
    llm = FakeLLM('```json\n{"predictedYield": 31.5, "confidence": 88, "tonsPerAcre": 3.15, '
                  '"estimatedRevenue": 15750, "recommendations": ["Drip", "Mulch", "Soil test"], "extra": 1}\n```')
    backend, factory = backend_with(llm)
    reply = backend.yield_prediction({"farmData": {"area": 10, "irrigation": "Drip", "fertilizerType": "Urea",
                                                   "soilType": "Loamy", "season": "Kharif", "waterUsage": 40000}})
    assert reply == {"predictedYield": 31.5, "confidence": 88, "tonsPerAcre": 3.15,
                     "estimatedRevenue": 15750, "recommendations": ["Drip", "Mulch", "Soil test"]}
    prompt = llm.invocations[0][0].content
    assert "- Area: 10 acres" in prompt
    assert "- Water Usage: 40000 liters/day" in prompt
    assert factory.calls[0][2] == 0.3


@pytest.mark.parametrize("request_body", [{}, {"farmData": {}}, {"farmData": "ten acres"}, {"farmData": {"season": "Rabi"}}])
def test_yield_prediction_rejects_bad_farm_data(request_body):
    backend, factory = backend_with(FakeLLM("unused"))
    assert "error" in backend.yield_prediction(request_body)
    assert factory.calls == []


def test_market_recommendations_wraps_array_reply():
    llm = FakeLLM('[{"crop": "Tomatoes", "price": "$450/ton", "trend": "increasing", "insight": "Export demand"}, "noise"]')
    backend, factory = backend_with(llm)
    reply = backend.market_recommendations({"location": "Nashik, Maharashtra", "season": "Rabi"})
    assert reply == {"recommendations": [{"crop": "Tomatoes", "price": "$450/ton", "trend": "increasing",
                                          "insight": "Export demand"}]}
    assert "farmers in Nashik, Maharashtra during Rabi season" in llm.invocations[0][0].content
    assert factory.calls[0][2] == 0.4


def test_market_recommendations_defaults_and_object_reply():
    llm = FakeLLM('{"recommendations": [{"crop": "Rice"}]}')
    backend, _ = backend_with(llm)
    assert backend.market_recommendations({}) == {"recommendations": [{"crop": "Rice"}]}
    assert "general location during current season" in llm.invocations[0][0].content


def test_market_recommendations_without_list_is_an_error():
    backend, _ = backend_with(FakeLLM('{"crop": "Rice"}'))
    assert set(backend.market_recommendations({})) == {"error"}


def test_crop_insurance_uses_second_key_and_fills_optional_fields():
    llm = FakeLLM('{"premium": 1250, "coverage": 25000, "roi": 85, "eligibility": true, '
                  '"recommendations": ["Keep records"], "documents": ["Aadhaar card"]}')
    backend, factory = backend_with(llm, gemini_secondary_api_key="second-key")
    reply = backend.crop_insurance({"farmData": {"cropType": "rice", "area": 5, "location": "Pune, Maharashtra"}})
    assert reply["premium"] == 1250
    assert reply["eligibility"] is True
    assert reply["documents"] == ["Aadhaar card"]
    assert factory.calls[0][0] == "second-key"
    prompt = llm.invocations[0][0].content
    assert "- Soil Type: Not specified" in prompt
    assert "- Crop Type: rice" in prompt


def test_crop_insurance_requires_core_fields():
    backend, factory = backend_with(FakeLLM("unused"))
    reply = backend.crop_insurance({"farmData": {"cropType": "rice", "area": 5}})
    assert reply == {"error": "Invalid request: Missing required fields: location"}
    assert factory.calls == []


def test_disease_detection_sends_image_with_prompt():
    llm = FakeLLM('{"disease": "Leaf Blight", "confidence": 80, "severity": "high", '
                  '"symptoms": ["Brown spots"], "treatment": ["Fungicide"], "prevention": ["Spacing"]}')
    backend, factory = backend_with(llm, vision_model="vision-test")
    image = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake").decode()
    reply = backend.disease_detection({"image": image})
    assert reply["disease"] == "Leaf Blight"
    assert reply["severity"] == "high"
    assert factory.calls[0][1] == "vision-test"
    [message] = llm.invocations[0]
    text_part, image_part = message.content
    assert "Healthy Plant" in text_part["text"]
    assert image_part == {"type": "image_url", "image_url": {"url": image}}


def test_disease_detection_accepts_bare_base64_as_jpeg():
    llm = FakeLLM('{"disease": "Healthy Plant"}')
    backend, _ = backend_with(llm)
    data = base64.b64encode(b"jpeg bytes").decode()
    assert backend.disease_detection({"image": data}) == {"disease": "Healthy Plant"}
    assert llm.invocations[0][0].content[1]["image_url"]["url"] == f"data:image/jpeg;base64,{data}"


@pytest.mark.parametrize("request_body", [{}, {"image": ""}, {"image": "data:image/png;base64,@@not base64@@"}])
def test_disease_detection_rejects_missing_or_corrupt_image(request_body):
    backend, factory = backend_with(FakeLLM("unused"))
    assert "error" in backend.disease_detection(request_body)
    assert factory.calls == []


def test_advisory_functions_report_missing_keys(caplog):
    backend, _ = backend_with(FakeLLM("unused"), gemini_api_key=None)
    with caplog.at_level("ERROR"):
        reply = backend.crop_insurance({"farmData": {"cropType": "rice", "area": 5, "location": "Pune"}})
    assert reply == {"error": "advisory_api_key is not configured"}
    assert "crop-insurance configuration error" in caplog.text


def test_advisory_llm_failure_is_an_envelope():
    backend, _ = backend_with(FakeLLM(error=RuntimeError("API key not valid")))
    assert backend.market_recommendations({}) == {"error": "Gemini API key was rejected"}


def test_non_object_request_is_rejected():
    backend, _ = backend_with(FakeLLM("unused"))
    assert "error" in backend.crop_prediction(["not", "a", "dict"])

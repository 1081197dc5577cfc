import base64
import logging
import math
import re

from .errors import ProtocolError, TransportError
from .models import CropRecommendation, DiseaseDiagnosis, InsuranceQuote, MarketInsight, YieldEstimate
from .oracles import (AI_CHAT, CROP_INSURANCE, CROP_PREDICTION, DISEASE_DETECTION,
                      MARKET_RECOMMENDATIONS, YIELD_PREDICTION)
from .result import Err, ErrorKind, Ok

logger = logging.getLogger(__name__)


def _send(transport, function, payload, timeout):
    """One attempt, no retries. Transport/protocol failures come back as ``Err``."""
    try:
        return Ok(transport.send(function, payload, timeout))
    except TransportError as e:
        return Err(ErrorKind.TRANSPORT, str(e))
    except ProtocolError as e:
        return Err(ErrorKind.PROTOCOL, str(e))


def _optional_confidence(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().rstrip('%')
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric confidence '{value}' in recommendation.")
        return None
    if math.isnan(confidence) or confidence < 0:
        logger.warning(f"Ignoring invalid confidence '{value}' in recommendation.")
        return None
    if confidence > 1:
        confidence = confidence / 100.0
    return min(confidence, 1.0)


def _optional_text(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


_NUMBER_NOISE = re.compile(r"[^0-9.\-]")


def _optional_number(value):
    """Numbers, or strings like "₹12,500" and "2.5 tons"; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = _NUMBER_NOISE.sub("", value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _text_list(value):
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(text for text in (_optional_text(item) for item in value) if text)


def _optional_flag(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "eligible"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "not eligible"):
        return False
    return None


class RecommendationClient:
    def __init__(self, transport, timeout):
        self.transport = transport
        self.timeout = timeout

    def recommend(self, reading):
        sent = _send(self.transport, CROP_PREDICTION, {"reading": reading.to_wire()}, self.timeout)
        if not sent.ok:
            logger.warning(f"Crop recommendation unavailable: {sent}")
            return sent

        body = sent.value
        if "error" in body:
            logger.warning(f"Crop recommendation rejected by oracle: {body.get('error')}")
            return Err(ErrorKind.REJECTED, str(body.get("error")))

        crop = body.get("crop")
        if not isinstance(crop, str) or not crop.strip():
            logger.warning(f"Crop recommendation reply has no crop label: {body}")
            return Err(ErrorKind.PROTOCOL, "reply has no crop label")

        recommendation = CropRecommendation(
            crop=crop.strip(),
            confidence=_optional_confidence(body.get("confidence")),
            reasoning=_optional_text(body.get("reasoning")),
            care_instructions=_optional_text(body.get("careInstructions")),
        )
        logger.info(f"Recommended crop: {recommendation.crop}")
        return Ok(recommendation)


class ConversationClient:
    def __init__(self, transport, timeout):
        self.transport = transport
        self.timeout = timeout

    def ask(self, user_text, context):
        request = context.as_request(user_text)
        sent = _send(self.transport, AI_CHAT, request, self.timeout)
        if not sent.ok:
            logger.warning(f"Assistant unavailable: {sent}")
            return sent

        body = sent.value
        if "error" in body:
            logger.warning(f"Assistant rejected the request: {body.get('error')}")
            return Err(ErrorKind.REJECTED, str(body.get("error")))

        text = body.get("response")
        if not isinstance(text, str) or not text.strip():
            logger.warning("Assistant reply has no usable text.")
            return Err(ErrorKind.PROTOCOL, "reply has no text")
        return Ok(text.strip())


class AdvisoryClient:
    """Yield, market, insurance and disease oracles. One attempt each, like the other clients."""

    def __init__(self, transport, timeout):
        self.transport = transport
        self.timeout = timeout

    def _call(self, function, payload):
        sent = _send(self.transport, function, payload, self.timeout)
        if not sent.ok:
            logger.warning(f"{function} unavailable: {sent}")
            return sent
        body = sent.value
        if "error" in body:
            logger.warning(f"{function} rejected the request: {body.get('error')}")
            return Err(ErrorKind.REJECTED, str(body.get("error")))
        return sent

    def predict_yield(self, farm):
        sent = self._call(YIELD_PREDICTION, {"farmData": farm.to_wire()})
        if not sent.ok:
            return sent
        body = sent.value
        predicted = _optional_number(body.get("predictedYield"))
        if predicted is None:
            logger.warning(f"Yield reply has no predicted yield: {body}")
            return Err(ErrorKind.PROTOCOL, "reply has no predicted yield")
        return Ok(YieldEstimate(
            predicted_yield=predicted,
            confidence=_optional_confidence(body.get("confidence")),
            tons_per_acre=_optional_number(body.get("tonsPerAcre")),
            estimated_revenue=_optional_number(body.get("estimatedRevenue")),
            recommendations=_text_list(body.get("recommendations")),
        ))

    def market_recommendations(self, location=None, season=None):
        payload = {}
        if location:
            payload["location"] = location
        if season:
            payload["season"] = season
        sent = self._call(MARKET_RECOMMENDATIONS, payload)
        if not sent.ok:
            return sent
        items = sent.value.get("recommendations")
        if not isinstance(items, list):
            return Err(ErrorKind.PROTOCOL, "reply has no recommendations list")
        insights = []
        for item in items:
            crop = _optional_text(item.get("crop")) if isinstance(item, dict) else None
            if crop is None:
                logger.debug(f"Skipping market entry without a crop: {item}")
                continue
            insights.append(MarketInsight(
                crop=crop,
                price=_optional_text(item.get("price")),
                trend=_optional_text(item.get("trend")),
                insight=_optional_text(item.get("insight")),
            ))
        if not insights:
            return Err(ErrorKind.PROTOCOL, "reply has no usable market entries")
        return Ok(insights)

    def insurance_quote(self, application):
        sent = self._call(CROP_INSURANCE, {"farmData": application.to_wire()})
        if not sent.ok:
            return sent
        body = sent.value
        premium = _optional_number(body.get("premium"))
        coverage = _optional_number(body.get("coverage"))
        if premium is None or coverage is None:
            logger.warning(f"Insurance reply lacks premium or coverage: {body}")
            return Err(ErrorKind.PROTOCOL, "reply has no premium or coverage")
        return Ok(InsuranceQuote(
            premium=premium,
            coverage=coverage,
            roi=_optional_number(body.get("roi")),
            eligibility=_optional_flag(body.get("eligibility")),
            recommendations=_text_list(body.get("recommendations")),
            documents=_text_list(body.get("documents")),
        ))

    def detect_disease(self, image_bytes, mime_type="image/jpeg"):
        if not image_bytes:
            return Err(ErrorKind.REJECTED, "no image provided")
        encoded = base64.b64encode(image_bytes).decode("ascii")
        sent = self._call(DISEASE_DETECTION, {"image": f"data:{mime_type};base64,{encoded}"})
        if not sent.ok:
            return sent
        body = sent.value
        disease = _optional_text(body.get("disease"))
        if disease is None:
            logger.warning(f"Disease reply has no diagnosis: {body}")
            return Err(ErrorKind.PROTOCOL, "reply has no diagnosis")
        severity = _optional_text(body.get("severity"))
        return Ok(DiseaseDiagnosis(
            disease=disease,
            confidence=_optional_confidence(body.get("confidence")),
            severity=severity.lower() if severity else None,
            symptoms=_text_list(body.get("symptoms")),
            treatment=_text_list(body.get("treatment")),
            prevention=_text_list(body.get("prevention")),
        ))

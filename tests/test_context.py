from agribot.context import ContextAssembler
from agribot.models import CropRecommendation


def test_assemble_is_deterministic(scenario_reading):
    assembler = ContextAssembler()
    recommendation = CropRecommendation(crop="Rice", confidence=0.85)
    first = assembler.assemble(scenario_reading, recommendation, "hi")
    second = assembler.assemble(scenario_reading, recommendation, "hi")
    assert first == second
    assert first.as_dict() == second.as_dict()


def test_payload_carries_reading_crop_and_language(scenario_reading):
    payload = ContextAssembler().assemble(scenario_reading, CropRecommendation(crop="Rice"), "en")
    assert payload.as_dict() == {
        "sensorData": {"N": 80, "P": 70, "K": 40, "temperature": 27.0, "humidity": 75.0, "ph": 6.2, "rainfall": 180},
        "language": "en",
        "recommendedCrop": "Rice",
    }


def test_missing_recommendation_omits_only_crop_field(scenario_reading):
    assembler = ContextAssembler()
    with_crop = assembler.assemble(scenario_reading, CropRecommendation(crop="Rice"), "en").as_dict()
    without_crop = assembler.assemble(scenario_reading, None, "en").as_dict()
    assert "recommendedCrop" not in without_crop
    with_crop.pop("recommendedCrop")
    assert with_crop == without_crop


def test_request_includes_message(scenario_reading):
    payload = ContextAssembler().assemble(scenario_reading, None, "ta")
    request = payload.as_request("When should I irrigate?")
    assert request["message"] == "When should I irrigate?"
    assert request["language"] == "ta"

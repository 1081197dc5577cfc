import datetime
import uuid
from dataclasses import dataclass, field
from typing import Optional, Tuple

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


@dataclass(frozen=True)
class SensorReading:
    nitrogen: int
    phosphorus: int
    potassium: int
    temperature: float
    humidity: float
    ph: float
    rainfall: int

    def to_wire(self):
        return {
            "N": self.nitrogen,
            "P": self.phosphorus,
            "K": self.potassium,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "ph": self.ph,
            "rainfall": self.rainfall,
        }

    @classmethod
    def from_wire(cls, data):
        """Build a reading from the wire shape; accepts ``pH`` as well as ``ph``."""
        ph = data.get("ph", data.get("pH"))
        return cls(
            nitrogen=int(data["N"]),
            phosphorus=int(data["P"]),
            potassium=int(data["K"]),
            temperature=float(data["temperature"]),
            humidity=float(data["humidity"]),
            ph=float(ph),
            rainfall=int(data["rainfall"]),
        )


@dataclass(frozen=True)
class CropRecommendation:
    crop: str
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    care_instructions: Optional[str] = None


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime.datetime = field(default_factory=datetime.datetime.now)

    def __post_init__(self):
        if self.role not in (ROLE_USER, ROLE_ASSISTANT):
            raise ValueError(f"Unknown conversation role '{self.role}'")


class ConversationHistory:
    """Append-only, insertion-ordered list of turns for one session."""

    def __init__(self):
        self._turns = []

    def append(self, turn):
        self._turns.append(turn)
        return turn

    def __iter__(self):
        return iter(list(self._turns))

    def __len__(self):
        return len(self._turns)

    def __getitem__(self, index):
        return self._turns[index]

    @property
    def turns(self):
        return tuple(self._turns)


@dataclass(frozen=True)
class ContextPayload:
    reading: SensorReading
    language: str
    recommendation: Optional[CropRecommendation] = None

    def as_dict(self):
        payload = {
            "sensorData": self.reading.to_wire(),
            "language": self.language,
        }
        if self.recommendation is not None:
            payload["recommendedCrop"] = self.recommendation.crop
        return payload

    def as_request(self, message):
        request = {"message": message}
        request.update(self.as_dict())
        return request


@dataclass(frozen=True)
class LanguageProfile:
    code: str
    display_name: str
    native_name: str
    recognition_locale: str
    synthesis_locale: str
    rtl: bool = False

    @property
    def label(self):
        if self.native_name and self.native_name != self.display_name:
            return f"{self.display_name} ({self.native_name})"
        return self.display_name


@dataclass(frozen=True)
class FarmProfile:
    area: float
    irrigation: str
    fertilizer_type: str
    soil_type: str
    season: str
    water_usage: int

    def to_wire(self):
        return {
            "area": self.area,
            "irrigation": self.irrigation,
            "fertilizerType": self.fertilizer_type,
            "soilType": self.soil_type,
            "season": self.season,
            "waterUsage": self.water_usage,
        }


@dataclass(frozen=True)
class YieldEstimate:
    predicted_yield: float
    confidence: Optional[float] = None
    tons_per_acre: Optional[float] = None
    estimated_revenue: Optional[float] = None
    recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MarketInsight:
    crop: str
    price: Optional[str] = None
    trend: Optional[str] = None
    insight: Optional[str] = None


@dataclass(frozen=True)
class InsuranceApplication:
    crop_type: str
    area: float
    location: str
    soil_type: Optional[str] = None
    irrigation_type: Optional[str] = None
    previous_yield: Optional[float] = None

    def to_wire(self):
        wire = {"cropType": self.crop_type, "area": self.area, "location": self.location}
        for key, value in (("soilType", self.soil_type), ("irrigationType", self.irrigation_type),
                           ("previousYield", self.previous_yield)):
            if value is not None and value != "":
                wire[key] = value
        return wire


@dataclass(frozen=True)
class InsuranceQuote:
    premium: float
    coverage: float
    roi: Optional[float] = None
    eligibility: Optional[bool] = None
    recommendations: Tuple[str, ...] = ()
    documents: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DiseaseDiagnosis:
    disease: str
    confidence: Optional[float] = None
    severity: Optional[str] = None
    symptoms: Tuple[str, ...] = ()
    treatment: Tuple[str, ...] = ()
    prevention: Tuple[str, ...] = ()

    @property
    def healthy(self):
        return self.disease.strip().lower() == "healthy plant"


@dataclass(frozen=True)
class DayForecast:
    offset: int
    temperature: int
    condition: str

import logging
import random

from .models import DayForecast, FarmProfile

logger = logging.getLogger(__name__)

IRRIGATION_TYPES = ["Manual", "Sprinkler", "Flood", "Rain-fed", "Drip"]
SOIL_TYPES = ["Loamy", "Clay", "Silty", "Peaty", "Sandy"]
SEASONS = ["Kharif", "Rabi", "Zaid"]
FERTILIZER_TYPES = ["Organic", "Urea", "DAP", "NPK blend", "None"]

INSURANCE_CROPS = ["Rice", "Wheat", "Maize", "Cotton", "Sugarcane", "Soybean",
                   "Pulses", "Groundnut", "Sunflower", "Mustard", "Other"]
INSURANCE_SOILS = ["Alluvial", "Black", "Red", "Laterite", "Desert", "Mountain", "Other"]
INSURANCE_IRRIGATION = ["Rainfed", "Canal", "Tube well", "Drip", "Sprinkler", "Other"]

CONDITION_SUNNY = "sunny"
CONDITION_PARTLY_CLOUDY = "partly_cloudy"
CONDITION_CLOUDY = "cloudy"
CONDITION_LIGHT_RAIN = "light_rain"
CONDITION_HEAVY_RAIN = "heavy_rain"
WEATHER_CONDITIONS = [CONDITION_SUNNY, CONDITION_PARTLY_CLOUDY, CONDITION_CLOUDY,
                      CONDITION_LIGHT_RAIN, CONDITION_HEAVY_RAIN]

FORECAST_DAYS = 5
FORECAST_TEMPERATURE_RANGE = (20, 35)


class FarmSimulator:
    """Random but plausible farm profiles, used to prefill the yield form."""

    def __init__(self, rng=None):
        self._rng = rng or random.Random()

    def sample(self):
        rng = self._rng
        profile = FarmProfile(
            area=round(rng.uniform(10, 500), 1),
            irrigation=rng.choice(IRRIGATION_TYPES),
            fertilizer_type=rng.choice(FERTILIZER_TYPES),
            soil_type=rng.choice(SOIL_TYPES),
            season=rng.choice(SEASONS),
            water_usage=int(round(rng.uniform(20000, 100000))),
        )
        logger.debug(f"Sampled farm profile: {profile}")
        return profile


class WeatherSource:
    def __init__(self, rng=None):
        self._rng = rng or random.Random()

    def forecast(self, days=FORECAST_DAYS):
        low, high = FORECAST_TEMPERATURE_RANGE
        return [
            DayForecast(offset=offset,
                        temperature=self._rng.randint(low, high),
                        condition=self._rng.choice(WEATHER_CONDITIONS))
            for offset in range(days)
        ]

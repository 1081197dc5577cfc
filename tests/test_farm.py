import random

from agribot.farm import (FERTILIZER_TYPES, IRRIGATION_TYPES, SEASONS, SOIL_TYPES, WEATHER_CONDITIONS,
                          FarmSimulator, WeatherSource)


def test_sample_farm_uses_known_options():
    simulator = FarmSimulator(random.Random(7))
    for _ in range(50):
        farm = simulator.sample()
        assert 10 <= farm.area <= 500
        assert farm.irrigation in IRRIGATION_TYPES
        assert farm.fertilizer_type in FERTILIZER_TYPES
        assert farm.soil_type in SOIL_TYPES
        assert farm.season in SEASONS
        assert 20000 <= farm.water_usage <= 100000
        assert set(farm.to_wire()) == {"area", "irrigation", "fertilizerType", "soilType", "season", "waterUsage"}


def test_forecast_covers_five_consecutive_days():
    forecast = WeatherSource(random.Random(3)).forecast()
    assert [day.offset for day in forecast] == [0, 1, 2, 3, 4]
    for day in forecast:
        assert 20 <= day.temperature <= 35
        assert day.condition in WEATHER_CONDITIONS


def test_forecast_is_reproducible_with_seed():
    assert WeatherSource(random.Random(1)).forecast(3) == WeatherSource(random.Random(1)).forecast(3)

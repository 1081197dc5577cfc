import logging

from .models import LanguageProfile

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

LANGUAGES = [
    {"code": "en", "name": "English", "native": "English"},
    {"code": "hi", "name": "Hindi", "native": "हिंदी"},
    {"code": "bn", "name": "Bengali", "native": "বাংলা"},
    {"code": "te", "name": "Telugu", "native": "తెలుగు"},
    {"code": "mr", "name": "Marathi", "native": "मराठी"},
    {"code": "ta", "name": "Tamil", "native": "தமிழ்"},
    {"code": "gu", "name": "Gujarati", "native": "ગુજરાતી"},
    {"code": "kn", "name": "Kannada", "native": "ಕನ್ನಡ"},
    {"code": "or", "name": "Odia", "native": "ଓଡ଼ିଆ"},
    {"code": "pa", "name": "Punjabi", "native": "ਪੰਜਾਬੀ"},
]

# code -> (recognition locale, synthesis locale)
SPEECH_LOCALES = {
    "en": ("en-IN", "en-IN"),
    "hi": ("hi-IN", "hi-IN"),
    "bn": ("bn-IN", "bn-IN"),
    "te": ("te-IN", "te-IN"),
    "mr": ("mr-IN", "mr-IN"),
    "ta": ("ta-IN", "ta-IN"),
    "gu": ("gu-IN", "gu-IN"),
    "kn": ("kn-IN", "kn-IN"),
    "or": ("or-IN", "or-IN"),
    "pa": ("pa-IN", "pa-IN"),
}

RTL_LANGUAGES = frozenset({"ar", "he", "fa", "ur"})


translations = {
    "en": {
        "page_title": "AgriBot Dashboard", "page_caption": "Live field sensors and AI crop guidance",
        "select_language_label": "Language", "nav_label": "Go to",
        "dashboard": "Dashboard", "agribot_chat": "AgriBot Chat", "refresh_data": "Refresh Data",
        "loading": "Loading...", "error": "Error", "warning": "Warning", "info": "Information",

        "dashboard_title": "Agricultural Dashboard", "dashboard_subtitle": "Real-time sensor data and crop recommendations",
        "last_updated": "Last updated: {time}",
        "crop_recommendation": "Crop Recommendation", "optimal_match": "Optimal Match",
        "recommendation_unavailable": "Crop recommendation is unavailable right now. Sensor data is still live.",
        "confidence_label": "Confidence: {confidence}", "reasoning_label": "Why this crop", "care_label": "Care instructions",
        "temperature": "Temperature", "humidity": "Humidity", "rainfall": "Rainfall", "soil_ph": "Soil pH",
        "nitrogen": "Nitrogen", "phosphorus": "Phosphorus", "potassium": "Potassium",
        "optimal_range": "Optimal: {range}", "monthly_average": "Monthly average",
        "npk_header": "Soil Nutrients (NPK)", "sensor_history": "Recent Readings",
        "trend_up": "Above optimal", "trend_down": "Below optimal", "trend_steady": "Near optimal",

        "agribot_welcome": "Hello! I'm AgriBot, your AI agricultural assistant. I can help you with crop recommendations, farming techniques, pest management, and answer any questions about your farm. What would you like to know?",
        "ai_assistant": "Your AI agricultural assistant", "ai_online": "AI Assistant Online",
        "quick_questions": "Quick Questions", "click_question": "Click on any question to get started",
        "conversation": "Conversation", "bot_thinking": "AgriBot is thinking...",
        "chat_placeholder": "Ask AgriBot about farming, crops, or agricultural practices...",
        "quick_q1": "What crop should I plant this season?",
        "quick_q2": "How to manage pest problems?",
        "quick_q3": "What fertilizer should I use?",
        "quick_q4": "When should I irrigate my crops?",
        "chat_apology": "I apologize, I could not generate a response at this time. Please try again in a moment.",

        "voice_input_label": "Speak your question", "voice_reply_toggle": "Read replies aloud",
        "voice_not_understood": "Sorry, I could not understand the audio. Please try again.",
        "voice_capture_error": "Voice input failed: {error}",
        "mic_unavailable": "Voice input is not available on this system.",
        "speaker_unavailable": "Voice replies are not available on this system.",
        "speaker_language_unsupported": "Voice replies are not available in {lang}.",

        "yield_prediction": "Yield Prediction", "market_insights": "Market Insights",
        "crop_insurance": "Crop Insurance", "disease_detection": "Disease Detection",
        "advisory_failed": "Could not get an answer right now. Please try again.",
        "required_fields_missing": "Please fill in all required fields.",
        "recommendations": "Recommendations",

        "weather_forecast": "5-Day Weather Forecast", "weather_subtitle": "Regional weather outlook",
        "today": "Today", "tomorrow": "Tomorrow", "day_n": "Day {n}",
        "sunny": "Sunny", "partly_cloudy": "Partly Cloudy", "cloudy": "Cloudy",
        "light_rain": "Light Rain", "heavy_rain": "Heavy Rain",

        "yield_title": "Yield Prediction", "yield_subtitle": "Estimate your harvest from farm practices",
        "farm_area": "Farm area (acres)", "irrigation": "Irrigation", "fertilizer_type": "Fertilizer type",
        "soil_type": "Soil type", "season": "Season", "water_usage": "Water usage (liters/day)",
        "sample_farm": "Fill with sample farm", "predict_yield": "Predict Yield",
        "predicted_yield": "Predicted yield", "tons_value": "{value} tons",
        "tons_per_acre": "Tons per acre", "estimated_revenue": "Estimated revenue",

        "market_title": "Market Insights", "market_subtitle": "Crops in demand and current prices",
        "location": "Location", "location_placeholder": "District, State",
        "get_recommendations": "Get Recommendations", "price": "Price", "market_trend": "Trend",

        "insurance_title": "Crop Insurance", "insurance_subtitle": "Get personalized crop insurance quotes and recommendations",
        "crop_type": "Crop type", "previous_yield": "Previous yield (tons/acre)", "not_specified": "Not specified",
        "calculate_insurance": "Calculate Insurance", "premium": "Annual premium", "coverage": "Coverage",
        "roi_protection": "ROI protection", "eligible": "Eligible", "not_eligible": "Not eligible",
        "required_documents": "Required documents",

        "disease_title": "Disease Detection", "disease_subtitle": "Upload a plant photo to check for diseases",
        "plant_image": "Plant image", "analyze_image": "Analyze Image",
        "severity_label": "Severity: {severity}", "symptoms": "Symptoms", "treatment": "Treatment",
        "prevention": "Prevention", "healthy_plant_note": "No disease detected. Keep monitoring your crop.",
    },

    "hi": {
        "page_title": "एग्रीबॉट डैशबोर्ड", "page_caption": "खेत के लाइव सेंसर और एआई फसल मार्गदर्शन",
        "select_language_label": "भाषा", "nav_label": "जाएं",
        "dashboard": "डैशबोर्ड", "agribot_chat": "एग्रीबॉट चैट", "refresh_data": "डेटा रीफ्रेश करें",
        "loading": "लोड हो रहा है...", "error": "त्रुटि", "warning": "चेतावनी", "info": "जानकारी",

        "dashboard_title": "कृषि डैशबोर्ड", "dashboard_subtitle": "रीयल-टाइम सेंसर डेटा और फसल सिफारिशें",
        "last_updated": "अंतिम अपडेट: {time}",
        "crop_recommendation": "फसल सिफारिश", "optimal_match": "सर्वोत्तम मेल",
        "recommendation_unavailable": "फसल सिफारिश अभी उपलब्ध नहीं है। सेंसर डेटा अभी भी लाइव है।",
        "confidence_label": "विश्वास: {confidence}", "reasoning_label": "यह फसल क्यों", "care_label": "देखभाल निर्देश",
        "temperature": "तापमान", "humidity": "आर्द्रता", "rainfall": "वर्षा", "soil_ph": "मिट्टी पीएच",
        "nitrogen": "नाइट्रोजन", "phosphorus": "फास्फोरस", "potassium": "पोटेशियम",
        "optimal_range": "उपयुक्त: {range}", "monthly_average": "मासिक औसत",
        "npk_header": "मिट्टी के पोषक तत्व (एनपीके)", "sensor_history": "हाल की रीडिंग",
        "trend_up": "उपयुक्त से अधिक", "trend_down": "उपयुक्त से कम", "trend_steady": "उपयुक्त के निकट",

        "agribot_welcome": "नमस्ते! मैं एग्रीबॉट हूं, आपका AI कृषि सहायक। मैं फसल की सिफारिशों, खेती की तकनीकों, कीट प्रबंधन और आपके खेत के बारे में किसी भी प्रश्न में आपकी मदद कर सकता हूं। आप क्या जानना चाहेंगे?",
        "ai_assistant": "आपका AI कृषि सहायक", "ai_online": "AI सहायक ऑनलाइन",
        "quick_questions": "त्वरित प्रश्न", "click_question": "शुरू करने के लिए किसी भी प्रश्न पर क्लिक करें",
        "conversation": "बातचीत", "bot_thinking": "एग्रीबॉट सोच रहा है...",
        "chat_placeholder": "खेती, फसलों या कृषि प्रथाओं के बारे में एग्रीबॉट से पूछें...",
        "quick_q1": "इस मौसम में मुझे कौन सी फसल लगानी चाहिए?",
        "quick_q2": "कीट समस्याओं का प्रबंधन कैसे करें?",
        "quick_q3": "मुझे कौन सा उर्वरक उपयोग करना चाहिए?",
        "quick_q4": "मुझे अपनी फसलों की सिंचाई कब करनी चाहिए?",
        "chat_apology": "क्षमा करें, मैं अभी उत्तर नहीं दे सका। कृपया थोड़ी देर बाद फिर से प्रयास करें।",

        "voice_input_label": "अपना प्रश्न बोलें", "voice_reply_toggle": "उत्तर पढ़कर सुनाएं",
        "voice_not_understood": "क्षमा करें, ऑडियो समझ नहीं आया। कृपया फिर से प्रयास करें।",
        "voice_capture_error": "आवाज़ इनपुट विफल: {error}",
        "mic_unavailable": "इस सिस्टम पर आवाज़ इनपुट उपलब्ध नहीं है।",
        "speaker_unavailable": "इस सिस्टम पर आवाज़ में उत्तर उपलब्ध नहीं हैं।",
        "speaker_language_unsupported": "{lang} में आवाज़ में उत्तर उपलब्ध नहीं हैं।",

        "yield_prediction": "उपज पूर्वानुमान", "market_insights": "बाजार जानकारी",
        "crop_insurance": "फसल बीमा", "disease_detection": "रोग पहचान",
        "advisory_failed": "अभी उत्तर नहीं मिल सका। कृपया फिर से प्रयास करें।",
        "required_fields_missing": "कृपया सभी आवश्यक फ़ील्ड भरें।",
        "recommendations": "सुझाव",

        "weather_forecast": "5-दिन का मौसम पूर्वानुमान", "weather_subtitle": "क्षेत्रीय मौसम का अनुमान",
        "today": "आज", "tomorrow": "कल", "day_n": "दिन {n}",
        "sunny": "धूप", "partly_cloudy": "आंशिक बादल", "cloudy": "बादल",
        "light_rain": "हल्की बारिश", "heavy_rain": "भारी बारिश",

        "yield_title": "उपज पूर्वानुमान", "yield_subtitle": "खेती के तरीकों से अपनी फसल का अनुमान लगाएं",
        "farm_area": "खेत का क्षेत्रफल (एकड़)", "irrigation": "सिंचाई", "fertilizer_type": "उर्वरक प्रकार",
        "soil_type": "मिट्टी का प्रकार", "season": "मौसम", "water_usage": "पानी का उपयोग (लीटर/दिन)",
        "sample_farm": "नमूना खेत भरें", "predict_yield": "उपज का अनुमान लगाएं",
        "predicted_yield": "अनुमानित उपज", "tons_value": "{value} टन",
        "tons_per_acre": "टन प्रति एकड़", "estimated_revenue": "अनुमानित आय",

        "market_title": "बाजार जानकारी", "market_subtitle": "मांग वाली फसलें और मौजूदा भाव",
        "location": "स्थान", "location_placeholder": "जिला, राज्य",
        "get_recommendations": "सुझाव प्राप्त करें", "price": "भाव", "market_trend": "रुझान",

        "insurance_title": "फसल बीमा", "insurance_subtitle": "व्यक्तिगत फसल बीमा कोटेशन और सुझाव पाएं",
        "crop_type": "फसल का प्रकार", "previous_yield": "पिछली उपज (टन/एकड़)", "not_specified": "निर्दिष्ट नहीं",
        "calculate_insurance": "बीमा की गणना करें", "premium": "वार्षिक प्रीमियम", "coverage": "कवरेज",
        "roi_protection": "आरओआई सुरक्षा", "eligible": "पात्र", "not_eligible": "पात्र नहीं",
        "required_documents": "आवश्यक दस्तावेज़",

        "disease_title": "रोग पहचान", "disease_subtitle": "रोगों की जांच के लिए पौधे की फोटो अपलोड करें",
        "plant_image": "पौधे की तस्वीर", "analyze_image": "तस्वीर का विश्लेषण करें",
        "severity_label": "गंभीरता: {severity}", "symptoms": "लक्षण", "treatment": "उपचार",
        "prevention": "रोकथाम", "healthy_plant_note": "कोई रोग नहीं मिला। अपनी फसल की निगरानी जारी रखें।",
    },

    # Partial tables; missing keys fall back to English.
    "mr": {
        "dashboard": "डॅशबोर्ड", "agribot_chat": "ॲग्रीबॉट चॅट", "select_language_label": "भाषा",
        "temperature": "तापमान", "humidity": "आर्द्रता", "rainfall": "पाऊस",
        "quick_q1": "या हंगामात मी कोणते पीक लावावे?",
        "quick_q4": "मी माझ्या पिकांना पाणी केव्हा द्यावे?",
    },
    "ta": {
        "dashboard": "டாஷ்போர்டு", "select_language_label": "மொழி",
        "temperature": "வெப்பநிலை", "humidity": "ஈரப்பதம்", "rainfall": "மழைப்பொழிவு",
        "quick_q1": "இந்த பருவத்தில் நான் எந்தப் பயிரை நட வேண்டும்?",
    },
    "bn": {
        "dashboard": "ড্যাশবোর্ড", "select_language_label": "ভাষা",
        "temperature": "তাপমাত্রা", "humidity": "আর্দ্রতা", "rainfall": "বৃষ্টিপাত",
    },
}


def _format_translation(template, **kwargs):
    if not kwargs:
        return template
    try:
        return str(template).format(**kwargs)
    except KeyError as e:
        logger.warning(f"Translator: Missing format key '{e}' in template. Template: '{template}' Kwargs: {kwargs}")
        return template
    except (ValueError, IndexError) as e:
        logger.warning(f"Translator: Formatting error ({e}). Template: '{template}' Kwargs: {kwargs}")
        return template


class TranslationTable:
    def __init__(self, tables=None, default_language=DEFAULT_LANGUAGE):
        self._tables = translations if tables is None else tables
        self.default_language = default_language

    @property
    def languages(self):
        return list(self._tables.keys())

    def has_key(self, key, language):
        return key in self._tables.get(language, {})

    def resolve(self, key, language, **kwargs):
        """Look up ``key`` in ``language``, then the default language, then return the key itself."""
        template = self._tables.get(language, {}).get(key)
        if template is None:
            template = self._tables.get(self.default_language, {}).get(key)
            if template is None:
                logger.debug(f"Translation key '{key}' not found for language '{language}' or fallback '{self.default_language}'.")
                return key
        return _format_translation(template, **kwargs)


class LocaleResolver:
    def __init__(self, locales=None, default_language=DEFAULT_LANGUAGE, rtl_languages=RTL_LANGUAGES):
        self._locales = SPEECH_LOCALES if locales is None else locales
        self.default_language = default_language
        self._rtl = frozenset(rtl_languages)

    def _lookup(self, language_code):
        tags = self._locales.get(language_code)
        if tags is None:
            logger.debug(f"No speech locale for '{language_code}'. Using '{self.default_language}'.")
            tags = self._locales[self.default_language]
        return tags

    def to_recognition_locale(self, language_code):
        return self._lookup(language_code)[0]

    def to_synthesis_locale(self, language_code):
        return self._lookup(language_code)[1]

    def is_right_to_left(self, language_code):
        return language_code in self._rtl


class LanguageCatalog:
    def __init__(self, entries=None, locale_resolver=None, default_language=DEFAULT_LANGUAGE):
        self._entries = {entry["code"]: entry for entry in (LANGUAGES if entries is None else entries)}
        self.locales = locale_resolver or LocaleResolver(default_language=default_language)
        self.default_language = default_language
        if default_language not in self._entries:
            raise ValueError(f"Default language '{default_language}' missing from catalog")

    @property
    def codes(self):
        return list(self._entries.keys())

    def is_supported(self, code):
        return code in self._entries

    def get(self, code):
        entry = self._entries.get(code)
        if entry is None:
            return None
        return LanguageProfile(
            code=entry["code"],
            display_name=entry["name"],
            native_name=entry["native"],
            recognition_locale=self.locales.to_recognition_locale(entry["code"]),
            synthesis_locale=self.locales.to_synthesis_locale(entry["code"]),
            rtl=self.locales.is_right_to_left(entry["code"]),
        )

    def profile(self, code):
        found = self.get(code)
        if found is None:
            logger.warning(f"Language '{code}' not in catalog. Falling back to '{self.default_language}'.")
            return self.get(self.default_language)
        return found

    def profiles(self):
        return [self.get(code) for code in self._entries]

    def display_name(self, code):
        entry = self._entries.get(code)
        return entry["name"] if entry else code

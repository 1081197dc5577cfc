import streamlit as st
import datetime
import logging

from agribot.clients import AdvisoryClient, ConversationClient, RecommendationClient
from agribot.config import configure_logging, load_settings
from agribot.farm import (FERTILIZER_TYPES, INSURANCE_CROPS, INSURANCE_IRRIGATION, INSURANCE_SOILS,
                          IRRIGATION_TYPES, SEASONS, SOIL_TYPES, FarmSimulator, WeatherSource)
from agribot.i18n import LanguageCatalog, TranslationTable
from agribot.models import FarmProfile, InsuranceApplication
from agribot.preferences import PreferenceStore
from agribot.sensors import OPTIMAL_RANGES, SensorLog, SensorSource, reading_trends, TREND_DOWN, TREND_UP
from agribot.session import ConversationSession
from agribot.speech import default_recognizer, default_synthesizer
from agribot.transport import build_transport
from agribot.voice import VoiceIOController

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

VIEW_DASHBOARD = "dashboard"
VIEW_CHAT = "agribot_chat"
VIEW_YIELD = "yield_prediction"
VIEW_MARKET = "market_insights"
VIEW_INSURANCE = "crop_insurance"
VIEW_DISEASE = "disease_detection"
VIEWS = [VIEW_DASHBOARD, VIEW_CHAT, VIEW_YIELD, VIEW_MARKET, VIEW_INSURANCE, VIEW_DISEASE]
QUICK_QUESTION_KEYS = ["quick_q1", "quick_q2", "quick_q3", "quick_q4"]
TREND_ARROWS = {TREND_UP: "▲", TREND_DOWN: "▼"}
WEATHER_ICONS = {"sunny": "☀️", "partly_cloudy": "⛅", "cloudy": "☁️", "light_rain": "🌦️", "heavy_rain": "🌧️"}
SEVERITY_COLORS = {"low": "green", "medium": "orange", "high": "red"}


@st.cache_resource
def get_transport():
    return build_transport(settings)


@st.cache_resource
def get_advisory_client():
    return AdvisoryClient(get_transport(), settings.request_timeout)


@st.cache_resource
def get_catalog():
    return LanguageCatalog()


@st.cache_resource
def get_translator():
    return TranslationTable()


def new_session():
    transport = get_transport()
    # st.audio_input is the only microphone source a Streamlit page has
    voice = VoiceIOController(
        recognizer=default_recognizer(platform_has_microphone=hasattr(st, "audio_input")),
        synthesizer=default_synthesizer(),
    )
    sensor_log = SensorLog()
    session = ConversationSession(
        sensor_source=SensorSource(),
        recommendation_client=RecommendationClient(transport, settings.request_timeout),
        conversation_client=ConversationClient(transport, settings.request_timeout),
        catalog=get_catalog(),
        translator=get_translator(),
        voice=voice,
        preferences=PreferenceStore(settings.preferences_path),
        on_grounding=lambda reading, recommendation: record_grounding(sensor_log, reading, recommendation),
    )
    st.session_state.sensor_log = sensor_log
    logger.info(f"New session created (language '{session.language}').")
    return session


def record_grounding(sensor_log, reading, recommendation):
    sensor_log.record(reading)
    st.session_state.latest_recommendation = recommendation
    st.session_state.last_update = datetime.datetime.now()


def ui_translator(key, **kwargs):
    return st.session_state.agribot_session.t(key, **kwargs)


def refresh_dashboard(session):
    reading = session.sensor_source.generate()
    result = session.recommendation_client.recommend(reading)
    record_grounding(st.session_state.sensor_log, reading, result.value if result.ok else None)
    st.session_state.weather = WeatherSource().forecast()


def show_notices(session):
    for notice in session.drain_notices():
        st.toast(notice, icon="⚠️")


def metric_card(column, label_key, value, unit, name, trends, caption):
    arrow = TREND_ARROWS.get(trends.get(name), "")
    with column:
        st.metric(ui_translator(label_key), f"{value}{unit}", delta=arrow or None, delta_color="off")
        if trends.get(name):
            st.caption(f"{ui_translator('trend_' + trends[name])} · {caption}")
        else:
            st.caption(caption)


def forecast_day_label(offset):
    if offset == 0:
        return ui_translator("today")
    if offset == 1:
        return ui_translator("tomorrow")
    return ui_translator("day_n", n=offset + 1)


def render_weather(forecast):
    with st.container(border=True):
        st.subheader(ui_translator("weather_forecast"))
        st.caption(ui_translator("weather_subtitle"))
        for column, day in zip(st.columns(len(forecast)), forecast):
            with column:
                st.markdown(f"**{forecast_day_label(day.offset)}**")
                st.markdown(f"### {WEATHER_ICONS.get(day.condition, '')} {day.temperature}°C")
                st.caption(ui_translator(day.condition))


def render_dashboard_body(session):
    sensor_log = st.session_state.sensor_log
    reading = sensor_log.latest

    last_update = st.session_state.get("last_update")
    if last_update:
        st.caption(ui_translator("last_updated", time=last_update.strftime("%H:%M:%S")))

    recommendation = st.session_state.get("latest_recommendation")
    with st.container(border=True):
        st.subheader(f"🌱 {ui_translator('crop_recommendation')}")
        if recommendation is not None:
            st.markdown(f"### {recommendation.crop}")
            st.caption(ui_translator("optimal_match"))
            if recommendation.confidence is not None:
                confidence = f"{recommendation.confidence:.0%}"
                st.progress(recommendation.confidence, text=ui_translator("confidence_label", confidence=confidence))
            if recommendation.reasoning:
                st.markdown(f"**{ui_translator('reasoning_label')}:** {recommendation.reasoning}")
            if recommendation.care_instructions:
                st.markdown(f"**{ui_translator('care_label')}:** {recommendation.care_instructions}")
        else:
            st.info(ui_translator("recommendation_unavailable"))

    trends = reading_trends(reading)
    col1, col2, col3, col4 = st.columns(4)
    metric_card(col1, "temperature", reading.temperature, "°C", "temperature", trends,
                ui_translator("optimal_range", range=OPTIMAL_RANGES["temperature"]))
    metric_card(col2, "humidity", reading.humidity, "%", "humidity", trends,
                ui_translator("optimal_range", range=OPTIMAL_RANGES["humidity"]))
    metric_card(col3, "soil_ph", reading.ph, "", "ph", trends,
                ui_translator("optimal_range", range=OPTIMAL_RANGES["ph"]))
    metric_card(col4, "rainfall", reading.rainfall, " mm", "rainfall", trends, ui_translator("monthly_average"))

    st.subheader(ui_translator("npk_header"))
    n_col, p_col, k_col = st.columns(3)
    n_col.metric(ui_translator("nitrogen"), f"{reading.nitrogen} mg/kg")
    p_col.metric(ui_translator("phosphorus"), f"{reading.phosphorus} mg/kg")
    k_col.metric(ui_translator("potassium"), f"{reading.potassium} mg/kg")

    history_df = sensor_log.to_frame()
    if len(history_df) > 1:
        st.subheader(ui_translator("sensor_history"))
        st.line_chart(history_df[["temperature", "humidity", "rainfall"]])

    forecast = st.session_state.get("weather")
    if forecast:
        render_weather(forecast)


@st.fragment(run_every=settings.sensor_refresh_seconds)
def live_panel(session):
    last_update = st.session_state.get("last_update")
    stale = last_update is None or (datetime.datetime.now() - last_update).total_seconds() >= settings.sensor_refresh_seconds
    if stale or st.session_state.sensor_log.latest is None:
        with st.spinner(ui_translator("loading")):
            refresh_dashboard(session)
    render_dashboard_body(session)


def render_dashboard(session):
    header_col, button_col = st.columns([4, 1])
    with header_col:
        st.header(ui_translator("dashboard_title"))
        st.caption(ui_translator("dashboard_subtitle"))
    with button_col:
        if st.button(f"🔄 {ui_translator('refresh_data')}", key="widget_refresh_button"):
            with st.spinner(ui_translator("loading")):
                refresh_dashboard(session)

    live_panel(session)


def process_turn(session, text=None, audio_bytes=None):
    with st.spinner(ui_translator("bot_thinking")):
        try:
            if audio_bytes is not None:
                outcomes = session.submit_audio(audio_bytes)
            else:
                outcomes = session.submit(text)
        except Exception:
            logger.exception("Critical error in main chat processing.")
            st.error(ui_translator("chat_apology"))
            return
    for outcome in outcomes:
        logger.info(f"AI Response answered={outcome.answered}. Length: {len(outcome.assistant_turn.content)}")
        if outcome.utterance is not None:
            st.session_state.pending_audio = outcome.utterance.audio


def render_chat(session):
    st.header(f"🤖 {ui_translator('agribot_chat')}")
    st.caption(f"{ui_translator('ai_assistant')} · 🟢 {ui_translator('ai_online')}")

    with st.expander(ui_translator("quick_questions"), expanded=len(session.history) == 0):
        st.caption(ui_translator("click_question"))
        q_cols = st.columns(2)
        for i, key in enumerate(QUICK_QUESTION_KEYS):
            question = ui_translator(key)
            if q_cols[i % 2].button(f"🌱 {question}", key=f"widget_quick_{key}", use_container_width=True):
                st.session_state.queued_question = question

    st.toggle(
        ui_translator("voice_reply_toggle"), key="widget_voice_reply",
        value=session.voice_output, disabled=not session.speaker_enabled,
        on_change=lambda: session.set_voice_output(st.session_state.widget_voice_reply),
    )

    st.subheader(ui_translator("conversation"))
    with st.chat_message("assistant"):
        st.markdown(ui_translator("agribot_welcome"))
    for turn in session.history:
        with st.chat_message(turn.role):
            st.markdown(turn.content)
            st.caption(turn.created_at.strftime("%H:%M:%S"))

    pending_audio = st.session_state.pop("pending_audio", None)
    if pending_audio:
        st.audio(pending_audio, format="audio/mp3", autoplay=True)
        # the browser owns playback from here; the next rerun drops the element
        session.playback_finished()

    if session.microphone_enabled:
        audio_value = st.audio_input(ui_translator("voice_input_label"), key=f"widget_audio_{st.session_state.audio_widget_round}")
        if audio_value is not None:
            st.session_state.audio_widget_round += 1
            process_turn(session, audio_bytes=audio_value.getvalue())
            st.rerun()

    queued = st.session_state.pop("queued_question", None)
    if prompt := st.chat_input(ui_translator("chat_placeholder"), key="main_chat_input_widget"):
        queued = prompt
    if queued:
        logger.info(f"User query: '{queued}'")
        process_turn(session, text=queued)
        st.rerun()


def show_advisory_error(result):
    logger.warning(f"Advisory request failed: {result}")
    st.error(ui_translator("advisory_failed"))


def bullet_section(title_key, items):
    if items:
        st.markdown(f"**{ui_translator(title_key)}**")
        st.markdown("\n".join(f"- {item}" for item in items))


def fill_sample_farm():
    farm = FarmSimulator().sample()
    st.session_state.widget_yield_area = float(farm.area)
    st.session_state.widget_yield_irrigation = farm.irrigation
    st.session_state.widget_yield_fertilizer = farm.fertilizer_type
    st.session_state.widget_yield_soil = farm.soil_type
    st.session_state.widget_yield_season = farm.season
    st.session_state.widget_yield_water = int(farm.water_usage)


def render_yield():
    st.header(f"📈 {ui_translator('yield_title')}")
    st.caption(ui_translator("yield_subtitle"))
    if "widget_yield_area" not in st.session_state:
        fill_sample_farm()
    st.button(ui_translator("sample_farm"), key="widget_yield_sample", on_click=fill_sample_farm)

    with st.form("yield_form"):
        col1, col2 = st.columns(2)
        area = col1.number_input(ui_translator("farm_area"), min_value=0.1, step=0.5, key="widget_yield_area")
        irrigation = col2.selectbox(ui_translator("irrigation"), IRRIGATION_TYPES, key="widget_yield_irrigation")
        fertilizer = col1.selectbox(ui_translator("fertilizer_type"), FERTILIZER_TYPES, key="widget_yield_fertilizer")
        soil = col2.selectbox(ui_translator("soil_type"), SOIL_TYPES, key="widget_yield_soil")
        season = col1.selectbox(ui_translator("season"), SEASONS, key="widget_yield_season")
        water = col2.number_input(ui_translator("water_usage"), min_value=0, step=1000, key="widget_yield_water")
        submitted = st.form_submit_button(ui_translator("predict_yield"))

    if submitted:
        farm = FarmProfile(area=area, irrigation=irrigation, fertilizer_type=fertilizer,
                           soil_type=soil, season=season, water_usage=int(water))
        with st.spinner(ui_translator("loading")):
            st.session_state.yield_result = get_advisory_client().predict_yield(farm)

    result = st.session_state.get("yield_result")
    if result is None:
        return
    if not result.ok:
        show_advisory_error(result)
        return
    estimate = result.value
    with st.container(border=True):
        col1, col2, col3 = st.columns(3)
        col1.metric(ui_translator("predicted_yield"), ui_translator("tons_value", value=f"{estimate.predicted_yield:,.1f}"))
        if estimate.tons_per_acre is not None:
            col2.metric(ui_translator("tons_per_acre"), f"{estimate.tons_per_acre:,.2f}")
        if estimate.estimated_revenue is not None:
            col3.metric(ui_translator("estimated_revenue"), f"${estimate.estimated_revenue:,.0f}")
        if estimate.confidence is not None:
            st.progress(estimate.confidence, text=ui_translator("confidence_label", confidence=f"{estimate.confidence:.0%}"))
        bullet_section("recommendations", estimate.recommendations)


def render_market():
    st.header(f"💹 {ui_translator('market_title')}")
    st.caption(ui_translator("market_subtitle"))

    with st.form("market_form"):
        col1, col2 = st.columns(2)
        location = col1.text_input(ui_translator("location"), placeholder=ui_translator("location_placeholder"))
        season = col2.selectbox(ui_translator("season"), SEASONS)
        submitted = st.form_submit_button(ui_translator("get_recommendations"))

    if submitted:
        with st.spinner(ui_translator("loading")):
            st.session_state.market_result = get_advisory_client().market_recommendations(location.strip(), season)

    result = st.session_state.get("market_result")
    if result is None:
        return
    if not result.ok:
        show_advisory_error(result)
        return
    for column, insight in zip(st.columns(len(result.value)), result.value):
        with column:
            with st.container(border=True):
                st.subheader(insight.crop)
                if insight.price:
                    st.metric(ui_translator("price"), insight.price)
                if insight.trend:
                    st.caption(f"{ui_translator('market_trend')}: {insight.trend}")
                if insight.insight:
                    st.write(insight.insight)


def render_insurance():
    st.header(f"🛡️ {ui_translator('insurance_title')}")
    st.caption(ui_translator("insurance_subtitle"))
    not_specified = ui_translator("not_specified")

    with st.form("insurance_form"):
        col1, col2 = st.columns(2)
        crop = col1.selectbox(f"{ui_translator('crop_type')} *", INSURANCE_CROPS)
        area = col2.number_input(f"{ui_translator('farm_area')} *", min_value=0.0, value=0.0, step=0.5)
        location = col1.text_input(f"{ui_translator('location')} *", placeholder=ui_translator("location_placeholder"))
        soil = col2.selectbox(ui_translator("soil_type"), [not_specified] + INSURANCE_SOILS)
        irrigation = col1.selectbox(ui_translator("irrigation"), [not_specified] + INSURANCE_IRRIGATION)
        previous_yield = col2.number_input(ui_translator("previous_yield"), min_value=0.0, value=0.0, step=0.1)
        submitted = st.form_submit_button(ui_translator("calculate_insurance"))

    if submitted:
        if not area or not location.strip():
            st.warning(ui_translator("required_fields_missing"))
            return
        application = InsuranceApplication(
            crop_type=crop.lower(), area=area, location=location.strip(),
            soil_type=None if soil == not_specified else soil.lower(),
            irrigation_type=None if irrigation == not_specified else irrigation.lower(),
            previous_yield=previous_yield or None,
        )
        with st.spinner(ui_translator("loading")):
            st.session_state.insurance_result = get_advisory_client().insurance_quote(application)

    result = st.session_state.get("insurance_result")
    if result is None:
        return
    if not result.ok:
        show_advisory_error(result)
        return
    quote = result.value
    with st.container(border=True):
        col1, col2, col3 = st.columns(3)
        col1.metric(ui_translator("premium"), f"₹{quote.premium:,.0f}")
        col2.metric(ui_translator("coverage"), f"₹{quote.coverage:,.0f}")
        if quote.roi is not None:
            col3.metric(ui_translator("roi_protection"), f"{quote.roi:.0f}%")
        if quote.eligibility is True:
            st.success(ui_translator("eligible"))
        elif quote.eligibility is False:
            st.warning(ui_translator("not_eligible"))
        bullet_section("recommendations", quote.recommendations)
        bullet_section("required_documents", quote.documents)


def render_disease():
    st.header(f"🔬 {ui_translator('disease_title')}")
    st.caption(ui_translator("disease_subtitle"))

    uploaded = st.file_uploader(ui_translator("plant_image"), type=["jpg", "jpeg", "png", "webp"], key="widget_disease_image")
    if uploaded is None:
        return
    st.image(uploaded, width=320)
    if st.button(ui_translator("analyze_image"), key="widget_disease_analyze"):
        with st.spinner(ui_translator("loading")):
            st.session_state.disease_result = get_advisory_client().detect_disease(uploaded.getvalue(), uploaded.type or "image/jpeg")

    result = st.session_state.get("disease_result")
    if result is None:
        return
    if not result.ok:
        show_advisory_error(result)
        return
    diagnosis = result.value
    with st.container(border=True):
        st.subheader(diagnosis.disease)
        if diagnosis.healthy:
            st.success(ui_translator("healthy_plant_note"))
        if diagnosis.severity:
            color = SEVERITY_COLORS.get(diagnosis.severity, "gray")
            st.markdown(f":{color}[{ui_translator('severity_label', severity=diagnosis.severity)}]")
        if diagnosis.confidence is not None:
            st.progress(diagnosis.confidence, text=ui_translator("confidence_label", confidence=f"{diagnosis.confidence:.0%}"))
        bullet_section("symptoms", diagnosis.symptoms)
        bullet_section("treatment", diagnosis.treatment)
        bullet_section("prevention", diagnosis.prevention)


VIEW_RENDERERS = {
    VIEW_YIELD: render_yield,
    VIEW_MARKET: render_market,
    VIEW_INSURANCE: render_insurance,
    VIEW_DISEASE: render_disease,
}


def main():
    if 'agribot_session' not in st.session_state: st.session_state.agribot_session = new_session()
    if 'current_view' not in st.session_state: st.session_state.current_view = VIEW_DASHBOARD
    if 'audio_widget_round' not in st.session_state: st.session_state.audio_widget_round = 0
    session = st.session_state.agribot_session

    st.set_page_config(
        page_title=ui_translator("page_title"),
        layout="wide",
        initial_sidebar_state="expanded"
    )

    if session.profile.rtl:
        st.markdown("<style>.stMarkdown, .stChatMessage { direction: rtl; text-align: right; }</style>", unsafe_allow_html=True)

    catalog = get_catalog()
    profiles = catalog.profiles()
    language_codes = [p.code for p in profiles]
    labels = {p.code: p.label for p in profiles}

    def language_change_callback():
        new_lang = st.session_state.widget_lang_select_key
        if session.language != new_lang:
            session.set_language(new_lang)
            logger.info(f"Site language MANUALLY changed to {new_lang} via dropdown.")

    def view_change_callback():
        new_view = st.session_state.widget_view_key
        if st.session_state.current_view == VIEW_CHAT and new_view != VIEW_CHAT:
            session.leave_chat()
            st.session_state.pop("pending_audio", None)
        st.session_state.current_view = new_view

    with st.sidebar:
        try:
            current_lang_index = language_codes.index(session.language)
        except ValueError:
            current_lang_index = 0
        st.selectbox(
            label=f"🌐 {ui_translator('select_language_label')}", options=language_codes,
            format_func=lambda code: labels.get(code, code),
            key='widget_lang_select_key', index=current_lang_index,
            on_change=language_change_callback
        )
        st.divider()
        st.radio(
            ui_translator("nav_label"), options=VIEWS, format_func=ui_translator,
            index=VIEWS.index(st.session_state.current_view),
            key="widget_view_key", on_change=view_change_callback
        )

    st.title(ui_translator("page_title"))
    st.caption(ui_translator("page_caption"))
    st.divider()

    current_view = st.session_state.current_view
    if current_view == VIEW_CHAT:
        render_chat(session)
    elif current_view in VIEW_RENDERERS:
        VIEW_RENDERERS[current_view]()
    else:
        render_dashboard(session)

    show_notices(session)


if __name__ == "__main__":
    logger.info("--- Starting AgriBot Streamlit App ---")
    main()

# Streamlit page: streamlit run calorie_ai/app.py
import logging

import streamlit as st

from calorie_ai.capture import IMAGE_UPLOAD_TYPES, InputTracker
from calorie_ai.client import BedrockClient
from calorie_ai.config import ConfigError
from calorie_ai.guidance import ACCURACY_REMINDER, LOW_ACCURACY_HINTS, LOW_ACCURACY_WARNING, PHOTOGRAPHY_TIPS
from calorie_ai.schemas.food import AnalysisResult
from calorie_ai.session import AnalysisSession, ErrorKind, SessionState
from calorie_ai.usecases.food_analyser import FoodAnalyser

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@st.cache_resource
def get_analyser() -> FoodAnalyser:
    """One client per process, built from validated configuration"""
    return FoodAnalyser(BedrockClient.from_env())


def get_session() -> AnalysisSession:
    if "session" not in st.session_state:
        try:
            analyser = get_analyser()
        except ConfigError as e:
            st.error(f"Configuration error: {str(e)}")
            st.stop()
        st.session_state["session"] = AnalysisSession(analyser)
        st.session_state["input_generation"] = 0
        st.session_state["inputs"] = InputTracker()
    return st.session_state["session"]


def _reset_inputs():
    # fresh widget keys clear the uploader and camera widgets
    st.session_state["input_generation"] += 1
    st.session_state["inputs"].reset()


def render_error(session: AnalysisSession):
    if session.state != SessionState.ERROR:
        return
    if session.error_kind == ErrorKind.DEVICE:
        st.error(f"**Camera Error**\n\n{session.error}")
    else:
        st.error(session.error)


def render_inputs(session: AnalysisSession):
    generation = st.session_state["input_generation"]
    inputs = st.session_state["inputs"]
    upload_tab, camera_tab = st.tabs(["Upload Photo", "Take Photo"])

    with upload_tab:
        uploaded = st.file_uploader("Upload a photo of your food", type=IMAGE_UPLOAD_TYPES,
                                    key=f"upload_{generation}", disabled=session.is_analyzing)
        if inputs.is_new("upload", uploaded):
            session.upload(uploaded)

    with camera_tab:
        snapshot = st.camera_input("Take a photo of your food", key=f"camera_{generation}",
                                   disabled=session.is_analyzing)
        if inputs.is_new("camera", snapshot):
            session.take_snapshot(snapshot)
        if st.button("Use device camera", help="Opens a preview window on this machine. "
                                               "SPACE or ENTER captures, ESC cancels."):
            session.take_photo()
            st.rerun()

    if session.image is not None:
        st.image(session.image.data, caption="Preview", use_container_width=True)
        if st.button("Analyze Photo", type="primary", disabled=session.is_analyzing):
            with st.spinner("Analyzing your food..."):
                session.analyze()
            st.rerun()
    else:
        st.info("Upload or take a photo of your food")


def render_results(result: AnalysisResult):
    st.subheader("Analysis Results")
    st.metric("Total Calories", f"{round(result.total_calories)} kcal")

    confidence = result.overall_accuracy_percentage
    st.markdown("**Overall Analysis Confidence**")
    st.caption("Based on ingredient recognition and portion estimation")
    st.progress(min(max(int(confidence), 0), 100), text=f"{confidence}%")

    if result.is_low_accuracy:
        hints = "\n".join(f"- {hint}" for hint in LOW_ACCURACY_HINTS)
        st.warning(f"**Low Accuracy Warning**\n\n{LOW_ACCURACY_WARNING}\n\n{hints}")

    with st.expander("Ingredient Details"):
        st.table([
            {
                "Ingredient": ingredient.name.capitalize(),
                "Weight": f"{ingredient.grams}g",
                "Calories": f"{ingredient.calories} kcal",
                "Accuracy": f"{ingredient.accuracy_percentage}%",
            }
            for ingredient in result.ingredients
        ])


def render_tips():
    with st.expander("Tips to improve your photo accuracy"):
        st.caption("Learn how to take photos that give you the most accurate results")
        for title, body in PHOTOGRAPHY_TIPS:
            st.markdown(f"**{title}**")
            st.write(body)
        st.info(f"**Important Reminder**\n\n{ACCURACY_REMINDER}")


def main():
    st.set_page_config(page_title="Food Calorie Estimator", page_icon="🍽️")
    st.title("Food Calorie Estimator")
    st.caption("Snap a photo, get instant calorie estimates")

    session = get_session()
    render_error(session)

    if session.result is None:
        render_inputs(session)
    else:
        render_results(session.result)
        new_col, again_col = st.columns(2)
        with new_col:
            if st.button("New Photo", use_container_width=True):
                session.new_photo()
                _reset_inputs()
                st.rerun()
        with again_col:
            if st.button("Reanalyze Photo", type="primary", use_container_width=True):
                with st.spinner("Analyzing your food..."):
                    session.reanalyze()
                st.rerun()

    render_tips()


main()

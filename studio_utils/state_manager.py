import streamlit as st
from studio_config.constants import ApiConfig, CropConfig, QUICK_EDITS, FILTER_PRESETS
from studio_core.crop import PixelRect, aspect_ratio, fit_aspect_rect
from studio_core.session import EditingSession
from studio_utils.api_client import StudioApiClient


def initialize_session_state():
    """Initialize all session state variables for one editing session."""
    defaults = {
        "mode": "edit",
        "model": ApiConfig.DEFAULT_MODEL,
        "prompt": "",
        "negative_prompt": "",
        "last_upload_id": None,
        "render_id": 0,
        "uploader_id": 0,
        "crop_aspect": CropConfig.DEFAULT_ASPECT,
        "crop_target_key": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value

    if "studio_session" not in st.session_state:
        session = EditingSession(client=StudioApiClient())
        session.check_health()
        st.session_state["studio_session"] = session


def get_session() -> EditingSession:
    return st.session_state["studio_session"]


def _bump():
    st.session_state["render_id"] += 1


def cb_select_layer(layer_id):
    get_session().select(layer_id)
    _bump()


def cb_toggle_layer(layer_id):
    get_session().toggle_visibility(layer_id)
    _bump()


def cb_solo_layer(layer_id):
    get_session().solo(layer_id)
    _bump()


def cb_delete_layer(layer_id):
    get_session().remove_layer(layer_id)
    _bump()


def cb_move_layer(layer_id, offset):
    session = get_session()
    ids = [layer.id for layer in session.layers]
    if layer_id in ids:
        session.move_layer(layer_id, ids.index(layer_id) + offset)
    _bump()


def cb_add_adjustment():
    get_session().add_adjustment_layer()
    _bump()


def cb_auto_segment():
    get_session().auto_segment()
    _bump()


def cb_quick_edit(idx):
    if 0 <= idx < len(QUICK_EDITS):
        get_session().apply_quick_edit(QUICK_EDITS[idx], model=st.session_state["model"])
    _bump()


def cb_apply_filter(idx):
    if 0 <= idx < len(FILTER_PRESETS):
        session = get_session()
        if session.apply_filter(FILTER_PRESETS[idx], model=st.session_state["model"]) is not None:
            st.session_state["prompt"] = FILTER_PRESETS[idx]["prompt"]
    _bump()


def cb_run_prompt():
    session = get_session()
    prompt = st.session_state["prompt"]
    negative = st.session_state["negative_prompt"]
    model = st.session_state["model"]
    if st.session_state["mode"] == "edit":
        session.apply_edit(prompt, negative_prompt=negative, model=model)
    else:
        session.generate(prompt, negative_prompt=negative, model=model)
    _bump()


def cb_clear_image():
    get_session().clear_image()
    st.session_state["last_upload_id"] = None
    st.session_state["uploader_id"] += 1
    _bump()


def sync_crop_fields(target, force=False):
    """Reset the crop inputs to the aspect preset's rectangle whenever the target or its size changes."""
    key = (target.id, *target.size)
    if not force and st.session_state["crop_target_key"] == key:
        return
    rect = fit_aspect_rect(*target.size, aspect_ratio(st.session_state["crop_aspect"]))
    st.session_state["crop_x"] = rect.x
    st.session_state["crop_y"] = rect.y
    st.session_state["crop_w"] = rect.width
    st.session_state["crop_h"] = rect.height
    st.session_state["crop_target_key"] = key


def cb_set_aspect():
    target = get_session().crop_target()
    if target is not None and target.raster is not None:
        sync_crop_fields(target, force=True)
    _bump()


def cb_apply_crop(layer_id):
    rect = PixelRect(
        int(st.session_state["crop_x"]),
        int(st.session_state["crop_y"]),
        int(st.session_state["crop_w"]),
        int(st.session_state["crop_h"]),
    )
    get_session().crop(rect, layer_id=layer_id)
    _bump()

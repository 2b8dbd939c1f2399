import streamlit as st

# 🎯 CRITICAL: Must be the VERY FIRST Streamlit command
st.set_page_config(
    page_title="Image Studio",
    page_icon="🖼️",
    layout="wide",
    initial_sidebar_state="expanded"
)

from studio_config.constants import ApiConfig, CropConfig, UIConfig, UploadConfig, QUICK_EDITS, FILTER_PRESETS
from studio_core.layers import LayerKind
from studio_utils.image_processing import draw_outline, resize_for_display
from studio_utils.logger import logger
from studio_utils.security import validate_image_upload, export_filename
from studio_utils.state_manager import (
    initialize_session_state, get_session,
    cb_select_layer, cb_toggle_layer, cb_solo_layer, cb_delete_layer, cb_move_layer,
    cb_add_adjustment, cb_auto_segment, cb_quick_edit, cb_apply_filter, cb_run_prompt, cb_clear_image,
    cb_set_aspect, cb_apply_crop, sync_crop_fields,
)

# --- 1️⃣ SESSION INITIALIZATION (VERY TOP)
initialize_session_state()


def handle_upload(uploaded):
    """Import a newly uploaded file once; reruns reuse the same upload id."""
    if uploaded is None or uploaded.file_id == st.session_state["last_upload_id"]:
        return
    valid, message = validate_image_upload(uploaded.type, uploaded.size)
    session = get_session()
    if not valid:
        session.last_error = message
    else:
        session.import_photo_bytes(uploaded.getvalue())
    st.session_state["last_upload_id"] = uploaded.file_id


def render_sidebar():
    session = get_session()
    with st.sidebar:
        st.header("Image Studio")
        uploaded = st.file_uploader(
            "Upload photo",
            type=list(UploadConfig.ALLOWED_EXTENSIONS),
            key=f"uploader_{st.session_state['uploader_id']}",
        )
        handle_upload(uploaded)
        if session.has_editable_image:
            st.button("Clear image", on_click=cb_clear_image)

        st.radio("Mode", ["edit", "generate"], key="mode", horizontal=True)
        st.selectbox("Model", list(ApiConfig.MODELS), key="model", format_func=ApiConfig.MODELS.get)
        st.text_area("Prompt", key="prompt", max_chars=ApiConfig.MAX_PROMPT_LENGTH)
        st.text_input("Negative prompt", key="negative_prompt")
        st.button("✨ Run", on_click=cb_run_prompt, type="primary", width="stretch")

        with st.expander("Quick edits"):
            for idx, action in enumerate(QUICK_EDITS):
                st.button(action["label"], key=f"quick_{idx}", help=action["description"],
                          on_click=cb_quick_edit, args=(idx,), width="stretch")

        with st.expander("Filters"):
            for idx, preset in enumerate(FILTER_PRESETS):
                st.button(f"{preset['label']} ({preset['category']})", key=f"filter_{idx}",
                          on_click=cb_apply_filter, args=(idx,), width="stretch")

        st.divider()
        st.button("🪄 Auto segment", on_click=cb_auto_segment,
                  disabled=not session.has_editable_image, width="stretch")
        st.button("➕ Adjustment layer", on_click=cb_add_adjustment, width="stretch")

        render_crop_controls(session)


def render_crop_controls(session):
    target = session.crop_target()
    with st.expander("✂️ Crop", expanded=False):
        if target is None or target.raster is None:
            st.caption("Nothing to crop")
            return
        w, h = target.size
        sync_crop_fields(target)
        st.caption(f"Target: {target.name} ({w}x{h})")
        st.radio("Aspect", [label for label, _ in CropConfig.ASPECT_PRESETS], key="crop_aspect",
                 horizontal=True, on_change=cb_set_aspect)
        c1, c2 = st.columns(2)
        c1.number_input("X", min_value=0, max_value=w - 1, key="crop_x")
        c2.number_input("Y", min_value=0, max_value=h - 1, key="crop_y")
        c1.number_input("Width", min_value=1, max_value=w, key="crop_w")
        c2.number_input("Height", min_value=1, max_value=h, key="crop_h")
        st.button("Apply crop", on_click=cb_apply_crop, args=(target.id,), width="stretch")


def render_layer_panel(session):
    st.subheader("Layers")
    if not session.layers:
        st.caption("No layers yet")
        return
    for idx, layer in enumerate(session.layers):
        selected = layer.id == session.store.selected_id
        cols = st.columns([1, 4, 1, 1, 1, 1, 1])
        if layer.raster is not None:
            cols[0].image(resize_for_display(layer.raster, UIConfig.THUMBNAIL_WIDTH))
        label = f"**{layer.name}**" if selected else layer.name
        cols[1].markdown(f"{label}  \n`{layer.kind.value}` · {layer.timestamp}")
        cols[1].button("Select", key=f"sel_{layer.id}", on_click=cb_select_layer, args=(layer.id,))
        cols[2].button("👁️" if layer.visible else "🚫", key=f"vis_{layer.id}",
                       on_click=cb_toggle_layer, args=(layer.id,))
        if layer.kind is LayerKind.SEGMENT:
            cols[3].button("🎯", key=f"solo_{layer.id}", help="Solo", on_click=cb_solo_layer, args=(layer.id,))
        cols[4].button("⬆️", key=f"up_{layer.id}", disabled=idx == 0,
                       on_click=cb_move_layer, args=(layer.id, -1))
        cols[5].button("⬇️", key=f"down_{layer.id}", disabled=idx == len(session.layers) - 1,
                       on_click=cb_move_layer, args=(layer.id, 1))
        cols[6].button("🗑️", key=f"del_{layer.id}", on_click=cb_delete_layer, args=(layer.id,))


def main():
    session = get_session()
    render_sidebar()

    if session.last_error:
        st.error(session.last_error)
    if session.last_warning:
        st.warning(session.last_warning)

    canvas_col, panel_col = st.columns([3, 2])
    with canvas_col:
        preview = session.composite()
        if preview is not None:
            box = session.selection_outline(preview.shape[1], preview.shape[0])
            if box is not None:
                preview = draw_outline(preview, box)
            st.image(resize_for_display(preview), width="content")
            png = session.export_png()
            if png is not None:
                st.download_button("⬇️ Export", png, file_name=export_filename(st.session_state["mode"]),
                                   mime="image/png")
        else:
            st.info("Upload a photo or generate an image to get started.")

    with panel_col:
        render_layer_panel(session)
        with st.expander("History"):
            for entry in session.history:
                st.write(f"• {entry}")

    logger.debug(f"Rendered frame {st.session_state['render_id']}")


if __name__ == "__main__":
    main()

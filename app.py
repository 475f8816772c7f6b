# filename: app.py

# -----------------------------------------------------------------------------
# [메인 애플리케이션]
# 로그인 -> 자막 입력 -> 스트리밍 기사 생성 -> R2 자동 저장 -> 라이브러리(열기/공유/삭제)
# 화면 전환과 이벤트 처리를 담당한다. 실제 로직은 core / storage 모듈에 있다.
# 실행: streamlit run app.py
# -----------------------------------------------------------------------------

import logging

import streamlit as st

import config
import core
import storage
import ui

logger = logging.getLogger(__name__)


def setup_logging():
    """콘솔 로그 핸들러 설정. 루트 로거에 이미 핸들러가 있으면 아무 것도 하지 않는다."""
    logging.basicConfig(level=config.get_setting("LOG_LEVEL", "INFO").upper(), format=config.LOG_FORMAT)


# -----------------------------------------------------------------------------
# [애플리케이션 상태 관리]
# -----------------------------------------------------------------------------

def init_session_state():
    """재실행(rerun) 사이에 유지되어야 하는 상태 변수들을 초기화한다."""
    defaults = {
        "input_text": "",               # 처리할 원본 텍스트 (자막이면 타임스탬프 제거 후)
        "output_text": "",              # 스트리밍으로 누적된 기사 Markdown
        "status": config.STATUS_IDLE,   # IDLE / LOADING / SUCCESS / ERROR
        "error": None,
        "is_saved": False,
        "saved_key": None,
        "save_error": None,
        "view": config.VIEW_EDITOR,     # editor / library / article
        "opened_key": None,
        "opened_content": "",
        "share_links": {},
        "confirm_delete": None,
        "history": None,                # None이면 다음 실행 때 스토리지에서 다시 읽는다.
        "fetched_models": [],
        "uploaded_filename": None,
        "uploaded_file_id": None,       # 같은 이름의 다른 파일도 새로 읽기 위해 file_id로 구분한다.
        "encoding": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def reset():
    """'다시 시작': 결과 관련 상태만 비우고 입력은 남겨둔다."""
    st.session_state.update({
        "status": config.STATUS_IDLE,
        "output_text": "",
        "error": None,
        "is_saved": False,
        "saved_key": None,
        "save_error": None,
    })


@st.cache_resource(show_spinner=False)
def get_store():
    return storage.store_from_settings(config.load_storage_settings())


def current_user():
    """
    [auth] 설정이 있으면 OIDC 로그인 사용자, 없으면 로컬 게스트를 반환한다.
    로그인이 필요한데 아직 안 했으면 None.
    """
    if not config.has_secret_section("auth"):
        return {"id": "local", "email": "", "name": "local", "auth": False, "is_admin": False}
    if not st.user.is_logged_in:
        return None
    email = st.user.get("email") or ""
    return {
        "id": st.user.get("sub") or email,
        "email": email,
        "name": st.user.get("name") or email.split("@")[0],
        "auth": True,
        "is_admin": email.lower() in config.admin_emails(),
    }


def load_history(store, user):
    if store is None:
        return []
    if st.session_state["history"] is None:
        try:
            st.session_state["history"] = store.list_articles(user["id"])
        except storage.StorageError as e:
            logger.warning("Could not load history: %s", e)
            return []
    return st.session_state["history"]


# -----------------------------------------------------------------------------
# [메인 애플리케이션 로직]
# -----------------------------------------------------------------------------

def main():
    st.set_page_config(page_title=config.PAGE_TITLE, page_icon=config.PAGE_ICON, layout="centered")
    setup_logging()
    ui.load_css()
    init_session_state()
    ui.render_header()

    user = current_user()
    if user is None:
        render_login()
        ui.render_footer()
        return

    store = get_store()
    event, settings = ui.render_sidebar(user, load_history(store, user), store is not None)
    handle_event(event, settings, store, user)

    view = st.session_state["view"]
    if view == config.VIEW_LIBRARY:
        render_library(store, user)
    elif view == config.VIEW_ARTICLE:
        render_article(store, user)
    elif st.session_state["status"] == config.STATUS_IDLE:
        render_editor(settings)
    else:
        render_result(settings, store, user)
    ui.render_footer()


def render_login():
    st.subheader("Sign in to start writing")
    st.caption("Log in to turn your video transcripts into well-structured articles.")
    providers = config.auth_providers()
    if not providers:
        if st.button("🔑 Sign in", type="primary"):
            st.login()
    for provider in providers:
        if st.button(f"Continue with {provider.title()}", key=f"login_{provider}"):
            st.login(provider)


def handle_event(event, settings, store, user):
    """사이드바에서 발생한 이벤트를 처리한다."""
    if event == "check_models":
        handle_check_models(settings["api_key"])
    elif event == "logout":
        reset()
        st.logout()
    elif event == "new_article":
        reset()
        st.session_state["view"] = config.VIEW_EDITOR
        st.rerun()
    elif event == "open_library":
        st.session_state["view"] = config.VIEW_LIBRARY
        st.rerun()
    elif event.startswith("open_article:"):
        if open_article(store, user, event.split(":", 1)[1]):
            st.rerun()


def handle_check_models(api_key):
    """'모델 조회' 버튼 클릭 이벤트를 처리하는 함수."""
    if not api_key:
        st.sidebar.error("API Key Required")
        return
    with st.spinner("Checking available models..."):
        try:
            st.session_state["fetched_models"] = core.list_generation_models(api_key)
        except Exception as e:
            logger.warning("Model listing failed: %s", e)
            st.sidebar.error(f"Error checking models: {e}")
            return
    st.rerun()


# -----------------------------------------------------------------------------
# [편집 화면] 입력
# -----------------------------------------------------------------------------

def read_upload(uploaded, state):
    """새로 올라온 파일이면 디코딩해서 입력란에 채우고 True를 반환한다. 같은 업로드는 다시 읽지 않는다."""
    if uploaded is None:
        state["uploaded_file_id"] = None
        return False
    if uploaded.file_id == state["uploaded_file_id"]:
        return False
    text, encoding = core.decode_upload(uploaded.getvalue())
    cleaned = core.transcript_to_text(text)
    state.update({
        "uploaded_file_id": uploaded.file_id,
        "uploaded_filename": uploaded.name,
        "encoding": encoding,
        "input_text": cleaned,
        "input_box": cleaned,
    })
    logger.info("Loaded %s (%s, %d chars)", uploaded.name, encoding, len(cleaned))
    return True


def render_editor(settings):
    st.subheader("✨ Tidy up your video transcript")
    st.caption("Turn messy speech-recognition text into a clean, structured article.")

    uploaded = st.file_uploader("Upload a transcript (.txt, .srt, .vtt)", type=config.UPLOAD_TYPES)
    read_upload(uploaded, st.session_state)
    if uploaded:
        st.info(f"File loaded: {uploaded.name} · Encoding: {st.session_state['encoding']}")

    # 위젯이 화면에 없을 때 Streamlit이 위젯 상태를 지우므로, 실제 값은 input_text에 따로 보관한다.
    if "input_box" not in st.session_state:
        st.session_state["input_box"] = st.session_state["input_text"]
    st.text_area("Transcript", key="input_box", height=300,
                 placeholder="Paste your subtitles or video transcript here...")
    st.session_state["input_text"] = st.session_state["input_box"]

    empty = not st.session_state["input_text"].strip()
    if st.button("✨ Start", type="primary", disabled=empty, key="start"):
        if not settings["api_key"]:
            st.warning("👈 Please enter your Google API Key in the sidebar.")
            return
        reset()
        st.session_state["status"] = config.STATUS_LOADING
        st.rerun()


# -----------------------------------------------------------------------------
# [결과 화면] 스트리밍 출력, 자동 저장, 다운로드
# -----------------------------------------------------------------------------

def render_result(settings, store, user):
    status = st.session_state["status"]
    st.subheader("📄 Your article")
    badge_ph = st.empty()
    ui.render_status_badge(badge_ph, status, is_saved=st.session_state["is_saved"])

    if st.button("↩️ Start over", key="start_over"):
        reset()
        st.rerun()

    progress_ph = st.empty()
    output_ph = st.empty()

    if status == config.STATUS_LOADING:
        run_processing(settings, store, user, badge_ph, progress_ph, output_ph)
        return

    if status == config.STATUS_ERROR:
        st.error(f"Processing failed: {st.session_state['error']}")
        if st.button("🔄 Retry", key="retry"):
            st.session_state["status"] = config.STATUS_LOADING
            st.rerun()
        return

    output = st.session_state["output_text"]
    if st.session_state["save_error"]:
        st.warning(f"Auto-save to R2 failed: {st.session_state['save_error']}")
    elif st.session_state["saved_key"]:
        st.caption(f"Saved as `{st.session_state['saved_key']}`")

    col1, col2 = st.columns(2)
    col1.download_button("⬇️ Download MD", output.encode("utf-8"), core.download_filename(output),
                         "text/markdown", type="primary")
    with col2.popover("📋 Copy for Notion"):
        st.caption("Use the copy icon, then paste into Notion.")
        st.code(output, language="markdown")
    output_ph.markdown(output)


def run_processing(settings, store, user, badge_ph, progress_ph, output_ph):
    """기사 생성 전체 흐름: 스트리밍 -> 완료 -> (설정되어 있으면) R2 자동 저장."""
    # 붙여넣은 텍스트가 자막 형식일 수도 있으니 여기서 한 번 더 정리한다.
    text = core.transcript_to_text(st.session_state["input_text"])
    full_text = ""
    failed = None
    progress_ph.progress(0.0)
    output_ph.info("Waking up the AI assistant...")
    try:
        model = core.create_model(settings["api_key"], settings["selected_model"])
        for piece in core.stream_article(model, text, settings["bilingual"], settings["target_lang"]):
            full_text += piece
            st.session_state["output_text"] = full_text
            progress_ph.progress(core.estimate_progress(len(full_text), len(text), settings["bilingual"]))
            ui.render_streaming(output_ph, full_text)
    except Exception as e:
        logger.warning("Article generation failed: %s", e)
        failed = str(e) or config.DEFAULT_ERROR

    if failed:
        st.session_state.update({"status": config.STATUS_ERROR, "error": failed})
        st.rerun()

    st.session_state.update({"status": config.STATUS_SUCCESS, "output_text": full_text})
    progress_ph.progress(1.0)
    output_ph.markdown(full_text)

    # 자동 백업. 실패해도 기사 자체는 성공으로 둔다.
    if store is not None and full_text:
        ui.render_status_badge(badge_ph, config.STATUS_SUCCESS, is_saving=True)
        with st.spinner("Syncing to R2..."):
            try:
                st.session_state["saved_key"] = store.save(full_text, user["id"])
                st.session_state["is_saved"] = True
                st.session_state["history"] = None
            except storage.StorageError as e:
                st.session_state["save_error"] = str(e)
    st.rerun()


# -----------------------------------------------------------------------------
# [라이브러리] 저장된 기사 목록, 열기 / 공유 / 삭제
# -----------------------------------------------------------------------------

def can_access(store, user, key):
    return user["is_admin"] or store.owns(key, user["id"])


def open_article(store, user, key):
    if store is None or not can_access(store, user, key):
        st.error("You cannot open this article.")
        return False
    try:
        content = store.read(key)
    except storage.StorageError as e:
        st.error(str(e))
        return False
    st.session_state.update({"opened_key": key, "opened_content": content, "view": config.VIEW_ARTICLE})
    return True


def share_article(store, user, key):
    if not can_access(store, user, key):
        return
    try:
        st.session_state["share_links"][key] = store.share_url(key)
    except storage.StorageError as e:
        st.error(str(e))


def delete_article(store, user, key):
    if not can_access(store, user, key):
        st.error("You cannot delete this article.")
        return False
    try:
        store.delete(key)
    except storage.StorageError as e:
        st.error(str(e))
        return False
    st.session_state["share_links"].pop(key, None)
    st.session_state.update({"history": None, "confirm_delete": None})
    if st.session_state["opened_key"] == key:
        st.session_state.update({"opened_key": None, "opened_content": "", "view": config.VIEW_LIBRARY})
    return True


def render_delete_confirm(store, user, key):
    st.warning("Delete this article permanently?")
    c1, c2 = st.columns(2)
    if c1.button("🗑️ Delete", key=f"confirm_{key}", type="primary"):
        if delete_article(store, user, key):
            st.rerun()
    if c2.button("Cancel", key=f"cancel_{key}"):
        st.session_state["confirm_delete"] = None
        st.rerun()


def render_library(store, user):
    st.subheader("📚 Library")
    if store is None:
        st.info("Cloud storage is not configured. Set R2_ENDPOINT, R2_BUCKET, R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY.")
        return
    if st.button("🔄 Refresh", key="refresh"):
        st.session_state["history"] = None
        st.rerun()

    try:
        items = store.list_articles(None if user["is_admin"] else user["id"])
    except storage.StorageError as e:
        st.error(str(e))
        return
    if not items:
        st.info("No saved articles yet.")
        return

    st.caption(f"{len(items)} article(s)")
    for item in items:
        key = item["key"]
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([4, 1, 1, 1])
            c1.markdown(ui.format_item_label(item))
            if user["is_admin"]:
                c1.caption(f"👤 {item['owner']}")
            if c2.button("Open", key=f"open_{key}") and open_article(store, user, key):
                st.rerun()
            if c3.button("Share", key=f"share_{key}"):
                share_article(store, user, key)
            if c4.button("Delete", key=f"delete_{key}"):
                st.session_state["confirm_delete"] = key
            if key in st.session_state["share_links"]:
                st.code(st.session_state["share_links"][key], language=None)
            if st.session_state["confirm_delete"] == key:
                render_delete_confirm(store, user, key)


def render_article(store, user):
    key = st.session_state["opened_key"]
    content = st.session_state["opened_content"]
    if st.button("← Back to library", key="back"):
        st.session_state["view"] = config.VIEW_LIBRARY
        st.rerun()
    if not key:
        st.info("No article selected.")
        return

    st.caption(f"`{key}`")
    c1, c2, c3 = st.columns(3)
    c1.download_button("⬇️ Download MD", content.encode("utf-8"), core.download_filename(content), "text/markdown")
    if c2.button("🔗 Share", key="share_opened"):
        share_article(store, user, key)
    if c3.button("🗑️ Delete", key="delete_opened"):
        st.session_state["confirm_delete"] = key
    if key in st.session_state["share_links"]:
        st.code(st.session_state["share_links"][key], language=None)
    if st.session_state["confirm_delete"] == key:
        render_delete_confirm(store, user, key)
    st.divider()
    st.markdown(content)


# --- 애플리케이션 실행 ---
if __name__ == "__main__":
    main()

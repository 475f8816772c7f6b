# filename: ui.py

# -----------------------------------------------------------------------------
# [UI 헬퍼 모듈]
# Streamlit UI를 구성하는 반복적인 코드들을 함수로 캡슐화한다.
# 메인 파일(app.py)은 이벤트 처리와 화면 전환만 담당한다.
# -----------------------------------------------------------------------------

import html

import streamlit as st

import config


def load_css():
    """애플리케이션 전체에 적용될 커스텀 CSS를 로드한다."""
    st.markdown("""
    <style>
        [data-testid="stSidebar"] { min-width: 320px; max-width: 460px; }
        .stButton>button { width: 100%; border-radius: 8px; font-weight: bold; }
        .brand { display: flex; flex-direction: column; line-height: 1.1; margin-bottom: 8px; }
        .brand-name { font-size: 1.6em; font-weight: 800; color: #1e293b; text-decoration: none; }
        .brand-url { font-size: 0.75em; color: #6366f1; font-weight: 600; }
        .badge { display: inline-block; padding: 2px 10px; border-radius: 999px; font-size: 0.75em; font-weight: bold; margin-right: 6px; }
        .badge-loading { background: #eef2ff; color: #4f46e5; }
        .badge-saving { background: #eff6ff; color: #2563eb; border: 1px solid #dbeafe; }
        .badge-saved { background: #ecfdf5; color: #059669; border: 1px solid #d1fae5; }
        .badge-error { background: #fef2f2; color: #dc2626; border: 1px solid #fee2e2; }
        .account { font-size: 0.85em; color: #334155; font-weight: bold; }
        .account-sub { font-size: 0.7em; color: #94a3b8; }
        .footer { font-size: 0.8em; color: #aaa; text-align: center; margin-top: 40px; }
    </style>
    """, unsafe_allow_html=True)


def render_header():
    st.markdown(f"""
    <div class="brand">
        <a class="brand-name" href="{config.HOME_URL}">📝 {config.PAGE_TITLE}</a>
        <span class="brand-url">{config.HOME_URL.replace("https://", "")}</span>
    </div>
    """, unsafe_allow_html=True)


def _render_account(user):
    crown = "👑 " if user.get("is_admin") else ""
    name = html.escape(user.get("name") or user.get("email") or user["id"])
    sub = "Signed in" if user.get("auth") else "Local mode (no login configured)"
    st.markdown(f'<div class="account">{crown}{name}</div><div class="account-sub">{sub}</div>',
                unsafe_allow_html=True)


def render_history(history, storage_enabled):
    """사이드바의 최근 기사 목록(히스토리 서랍). 클릭된 항목의 키를 반환한다."""
    clicked = None
    with st.expander("🕘 Recent articles", expanded=True):
        if not storage_enabled:
            st.caption("Cloud storage is not configured.")
            return None
        if not history:
            st.caption("No saved articles yet.")
            return None
        for item in history[:config.HISTORY_LIMIT]:
            if st.button(format_item_label(item), key=f"history_{item['key']}"):
                clicked = item["key"]
    return clicked


def format_item_label(item):
    modified = item.get("last_modified")
    when = modified.strftime("%Y-%m-%d %H:%M") if modified else item["key"].rsplit("/", 1)[-1]
    return f"📄 {when} · {max(1, round(item.get('size', 0) / 1024))} KB"


def render_sidebar(user, history, storage_enabled):
    """
    사이드바 UI 전체를 렌더링하고, 사용자 입력과 이벤트를 반환한다.

    Returns:
        tuple: (이벤트 이름, 설정 딕셔너리)
    """
    event = "update_settings"
    with st.sidebar:
        _render_account(user)
        if user.get("auth") and st.button("🚪 Log out"):
            event = "logout"

        st.divider()
        col1, col2 = st.columns(2)
        if col1.button("✍️ New"):
            event = "new_article"
        if col2.button("📚 Library"):
            event = "open_library"

        opened = render_history(history, storage_enabled)
        if opened:
            event = f"open_article:{opened}"

        st.header("⚙️ Settings")
        api_key = config.gemini_api_key()
        if not api_key:
            api_key = st.text_input("Google API Key", type="password")

        if st.button("🔍 Check Models"):
            event = "check_models"

        models = st.session_state.get("fetched_models") or [config.DEFAULT_MODEL]
        index = models.index(config.DEFAULT_MODEL) if config.DEFAULT_MODEL in models else 0

        # 나머지 설정들을 하나의 딕셔너리로 묶어 관리.
        settings = {
            "api_key": api_key,
            "selected_model": st.selectbox("Model", models, index=index,
                                           format_func=lambda x: x.replace("models/", "")),
            "bilingual": st.toggle("Bilingual article", value=False,
                                   help="Each paragraph is followed by its translation."),
        }
        settings["target_lang"] = st.selectbox("Translate into", config.LANGUAGE_OPTIONS,
                                               disabled=not settings["bilingual"])

        st.markdown(f'<div class="footer">{config.CREDITS}</div>', unsafe_allow_html=True)
    return event, settings


def render_status_badge(placeholder, status, is_saving=False, is_saved=False):
    badges = []
    if status == config.STATUS_LOADING:
        badges.append('<span class="badge badge-loading">⚡ AI writing</span>')
    if is_saving:
        badges.append('<span class="badge badge-saving">⟳ Syncing to R2...</span>')
    if status == config.STATUS_SUCCESS and is_saved:
        badges.append('<span class="badge badge-saved">✓ Saved to R2</span>')
    if status == config.STATUS_ERROR:
        badges.append('<span class="badge badge-error">Failed</span>')
    placeholder.markdown("".join(badges), unsafe_allow_html=True)


def render_streaming(placeholder, text):
    """스트리밍 중인 텍스트 뒤에 커서를 붙여 다시 그린다."""
    placeholder.markdown(text + " ▌")


def render_footer():
    st.markdown(f'<div class="footer">{config.CREDITS} · <a href="{config.HOME_URL}">{config.HOME_URL}</a></div>',
                unsafe_allow_html=True)

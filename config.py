# filename: config.py

# -----------------------------------------------------------------------------
# [설정 모듈]
# 고정된 설정값(이름, 모델, 프롬프트, UI 옵션 등)과 비밀값(API 키, 스토리지 자격 증명)을
# 읽어오는 함수를 한 곳에 모아둔다.
# -----------------------------------------------------------------------------

import os

import streamlit as st
from dotenv import load_dotenv

# .env 파일이 있으면 환경 변수로 올려둔다. (없으면 아무 일도 하지 않음)
load_dotenv()

# --- 앱 정보 ---
PAGE_TITLE = "Sub2Article AI"
PAGE_ICON = "📝"
HOME_URL = "https://sub2.324893.xyz"
CREDITS = "Powered by Google Gemini · 智能分段 & 错别字纠正 · R2 云端同步"

# --- 화면 상태 ---
STATUS_IDLE = "IDLE"
STATUS_LOADING = "LOADING"
STATUS_SUCCESS = "SUCCESS"
STATUS_ERROR = "ERROR"

VIEW_EDITOR = "editor"
VIEW_LIBRARY = "library"
VIEW_ARTICLE = "article"

# --- 모델 및 생성 파라미터 ---
DEFAULT_MODEL = "models/gemini-3-flash-preview"
GENERATION_CONFIG = {
    "temperature": 0.1,
    "top_p": 0.95,
    "top_k": 40,
    "max_output_tokens": 8192,
}
# 출력이 토큰 한도에서 잘렸을 때 "이어서 써줘"를 몇 번까지 다시 요청할지.
MAX_CONTINUATIONS = 3

PROMPT_TEMPLATE = """附件是一个视频语音识别转成的文字，帮我整理成段落，修改部分错别字，但是不要删除任何文字。【注意要整理成段落】
请使用 Markdown 格式输出（例如：使用合适的标题、粗体强调重点、列表等），使生成的文章结构清晰且易于阅读。

【极其重要】：直接输出整理后的正文内容。禁止包含任何开场白、介绍语（如“以下是整理后的内容...”）、结语或任何解释性文字。"""

BILINGUAL_INSTRUCTION = """【双语输出】：每个整理好的段落之后，紧接着给出该段落的{target_lang}译文，译文段落用 Markdown 引用（以 "> " 开头）标出。标题也需要附上{target_lang}译文。"""

CONTINUE_PROMPT = "你的输出因为长度限制被截断了。请从上次中断的地方继续输出，不要重复已经输出的内容，也不要添加任何说明。"

INPUT_HEADER = "待处理文字如下：\n---\n"

LANGUAGE_OPTIONS = ["English", "中文", "日本語", "한국어", "Español", "Français", "Deutsch"]

# --- 업로드 ---
UPLOAD_TYPES = ["txt", "srt", "vtt"]
DEFAULT_DOWNLOAD_NAME = "整理后的文章.md"

# --- 스토리지 ---
STORAGE_PREFIX = "articles"
SHARE_LINK_EXPIRES = 7 * 24 * 3600
HISTORY_LIMIT = 8

DEFAULT_ERROR = "处理过程中发生错误，请稍后重试。"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_setting(key, default="", section=None):
    """
    비밀값 조회. 우선순위: 환경 변수 > st.secrets[section][key] > st.secrets[key] > 기본값.
    secrets.toml 파일이 없어도 예외 없이 기본값으로 떨어진다.
    """
    value = os.getenv(key, "")
    if value:
        return value.strip()
    try:
        if section:
            sect = st.secrets.get(section, {})
            if hasattr(sect, "get"):
                v2 = sect.get(key)
                if isinstance(v2, str) and v2.strip():
                    return v2.strip()
        v3 = st.secrets.get(key)
        if isinstance(v3, str) and v3.strip():
            return v3.strip()
    except Exception:
        # secrets.toml이 없으면 Streamlit이 파싱 단계에서 예외를 던진다.
        pass
    return (default or "").strip()


def has_secret_section(name):
    """st.secrets에 해당 섹션이 있는지 확인한다. (OIDC 로그인 설정 여부 판단용)"""
    try:
        return name in st.secrets
    except Exception:
        return False


def auth_providers():
    """[auth] 아래에 설정된 OIDC 공급자 이름 목록. ([auth.google] -> "google")"""
    try:
        section = st.secrets.get("auth", {})
        return [name for name, value in section.items() if hasattr(value, "items")]
    except Exception:
        return []


def _flag(value):
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def load_storage_settings():
    """R2(S3 호환) 스토리지 접속 정보를 딕셔너리로 반환한다."""
    return {
        "endpoint": get_setting("R2_ENDPOINT", section="r2"),
        "bucket": get_setting("R2_BUCKET", section="r2"),
        "region": get_setting("R2_REGION", "auto", section="r2"),
        "access_key": get_setting("R2_ACCESS_KEY_ID", section="r2") or get_setting("AWS_ACCESS_KEY_ID"),
        "secret_key": get_setting("R2_SECRET_ACCESS_KEY", section="r2") or get_setting("AWS_SECRET_ACCESS_KEY"),
        "force_path_style": _flag(get_setting("R2_FORCE_PATH_STYLE", "true", section="r2")),
        "prefix": get_setting("R2_PREFIX", STORAGE_PREFIX, section="r2"),
    }


def gemini_api_key():
    return get_setting("GEMINI_API_KEY") or get_setting("GOOGLE_API_KEY")


def admin_emails():
    raw = get_setting("ADMIN_EMAILS")
    return {e.strip().lower() for e in raw.split(",") if e.strip()}

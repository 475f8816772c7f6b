# filename: core.py

# -----------------------------------------------------------------------------
# [핵심 로직 엔진]
# UI와 완전히 분리된 순수 로직. 자막/전사 텍스트를 정리하고, Gemini에 스트리밍으로
# 기사 생성을 요청하며, 저장 키와 파일 이름을 만든다.
# -----------------------------------------------------------------------------

import datetime
import logging
import re
from urllib.parse import quote

import chardet
import google.generativeai as genai
from google.generativeai.types import HarmCategory, HarmBlockThreshold

import config

logger = logging.getLogger(__name__)

# 전사 텍스트에는 욕설/폭력 묘사가 그대로 들어있는 경우가 많아 필터를 끈다.
SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}

BLOCKED_REASONS = {"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}

TIMESTAMP_RE = re.compile(r'^\s*(\d{1,2}:)?\d{2}:\d{2}[,.]\d{3}\s*-->\s*(\d{1,2}:)?\d{2}:\d{2}[,.]\d{3}.*$')


class GenerationError(RuntimeError):
    """모델이 내용을 차단했거나 아무것도 생성하지 못했을 때."""


# ---------------------------------------------------------
# [입력 처리] 업로드 파일 디코딩 및 자막 정리
# ---------------------------------------------------------

def detect_encoding(file_byte):
    result = chardet.detect(file_byte)
    return result['encoding']


def decode_upload(bytes_data):
    """업로드된 바이트를 문자열로 디코딩한다. (텍스트, 사용된 인코딩)을 반환."""
    encoding = detect_encoding(bytes_data) or 'utf-8'
    try:
        return bytes_data.decode(encoding), encoding
    except (UnicodeDecodeError, LookupError):
        # 감지가 틀렸으면 손상된 문자는 버리고 UTF-8로 강제 디코딩.
        return bytes_data.decode('utf-8', errors='ignore'), 'utf-8'


def parse_srt(content):
    pattern = re.compile(r'(\d+)\s*\n(\d{2}:\d{2}:\d{2},\d{3}\s*-->\s*\d{2}:\d{2}:\d{2},\d{3})\s*\n((?:.|\n)*?)(?=\n\s*\d+[ \t]*\n\d{2}:\d{2}:\d{2},\d{3}|\Z)', re.MULTILINE)
    matches = pattern.findall(content)

    parsed_data = []
    for match in matches:
        parsed_data.append({
            'index': match[0],
            'time': match[1],
            'text': match[2].strip()
        })
    return parsed_data


def _strip_cue_lines(content):
    """VTT 등 SRT 정규식에 맞지 않는 자막에서 헤더, 번호, 타임스탬프 줄을 걸러낸다."""
    lines = content.split("\n")
    kept = []
    skip_block = False
    for i, line in enumerate(lines):
        s = line.strip()
        if not s:
            skip_block = False
            continue
        if skip_block:
            continue
        # WEBVTT 헤더 블록과 NOTE/STYLE/REGION 블록은 빈 줄이 나올 때까지 통째로 버린다.
        if s.startswith(("WEBVTT", "NOTE", "STYLE", "REGION")):
            skip_block = True
            continue
        if TIMESTAMP_RE.match(s):
            continue
        # 바로 다음 줄이 타임스탬프면 이 줄은 큐 번호(또는 큐 ID)다.
        if i + 1 < len(lines) and TIMESTAMP_RE.match(lines[i + 1].strip()):
            continue
        kept.append(s)
    return kept


def transcript_to_text(content):
    """
    SRT/VTT 자막이면 번호와 타임스탬프를 제거하고 대사만 남긴다.
    일반 텍스트는 앞뒤 공백만 정리해서 그대로 반환한다.
    """
    if not content or not content.strip():
        return ""
    content = content.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")

    parsed = parse_srt(content)
    if parsed:
        lines = [item['text'].replace("\n", " ") for item in parsed if item['text']]
    elif any(TIMESTAMP_RE.match(line) for line in content.split("\n")):
        lines = _strip_cue_lines(content)
    else:
        return content.strip()

    # 자동 생성 자막은 같은 줄이 연달아 반복되는 경우가 많다.
    deduped = []
    for line in lines:
        if not deduped or deduped[-1] != line:
            deduped.append(line)
    return "\n".join(deduped)


# ---------------------------------------------------------
# [생성] Gemini 스트리밍 호출
# ---------------------------------------------------------

def build_prompt(text, bilingual=False, target_lang="English"):
    parts = [config.PROMPT_TEMPLATE]
    if bilingual:
        parts.append(config.BILINGUAL_INSTRUCTION.format(target_lang=target_lang))
    return "\n".join(parts) + "\n\n" + config.INPUT_HEADER + text


def list_generation_models(api_key):
    """generateContent를 지원하는 모델 이름 목록."""
    genai.configure(api_key=api_key)
    return [m.name for m in genai.list_models() if 'generateContent' in m.supported_generation_methods]


def create_model(api_key, model_name=config.DEFAULT_MODEL):
    genai.configure(api_key=api_key)
    return genai.GenerativeModel(model_name)


def _chunk_text(chunk):
    # 내용(parts)이 없는 청크에서 .text에 접근하면 ValueError가 난다. (예: 종료 사유만 담긴 마지막 청크)
    try:
        return chunk.text or ""
    except ValueError:
        return ""


def finish_reason(response):
    """응답의 첫 번째 후보의 종료 사유 이름. (예: "STOP", "MAX_TOKENS")"""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return ""
    return getattr(reason, "name", str(reason))


def stream_article(model, text, bilingual=False, target_lang="English",
                   max_continuations=config.MAX_CONTINUATIONS):
    """
    자막 텍스트를 Markdown 기사로 정리하는 스트리밍 제너레이터. 받은 텍스트 조각을 그대로 yield 한다.

    출력이 토큰 한도(MAX_TOKENS)에서 끊기면, 지금까지의 대화(원래 요청 + 모델의 부분 출력)에
    "이어서 써줘"를 붙여 다시 요청한다. 최대 max_continuations 번까지.
    """
    prompt = build_prompt(text, bilingual, target_lang)
    contents = prompt
    produced = ""

    for round_no in range(max_continuations + 1):
        try:
            response = model.generate_content(
                contents,
                safety_settings=SAFETY_SETTINGS,
                generation_config=config.GENERATION_CONFIG,
                stream=True,
            )
            for chunk in response:
                piece = _chunk_text(chunk)
                if piece:
                    produced += piece
                    yield piece
        except Exception:
            logger.exception("Gemini generation failed (round %d)", round_no + 1)
            raise

        reason = finish_reason(response)
        if reason in BLOCKED_REASONS:
            raise GenerationError(f"Generation stopped by the model: {reason}")
        if reason != "MAX_TOKENS":
            break

        if round_no == max_continuations:
            logger.warning("Output still truncated after %d continuation(s)", max_continuations)
            break
        logger.info("Output truncated at %d chars, asking the model to continue", len(produced))
        contents = [
            {"role": "user", "parts": [prompt]},
            {"role": "model", "parts": [produced]},
            {"role": "user", "parts": [config.CONTINUE_PROMPT]},
        ]

    if not produced.strip():
        raise GenerationError("The model returned an empty response.")


def estimate_progress(output_len, input_len, bilingual=False):
    """스트리밍 중 진행률 추정치 (0.0 ~ 0.95). 완료 시 1.0은 호출하는 쪽에서 설정한다."""
    if input_len <= 0:
        return 0.0
    expected = input_len * (2.2 if bilingual else 1.1)
    return round(min(0.95, output_len / expected), 3)


# ---------------------------------------------------------
# [결과물] 제목, 저장 키, 다운로드 파일 이름
# ---------------------------------------------------------

def article_title(markdown, fallback="Untitled"):
    """첫 번째 제목(없으면 비어있지 않은 첫 줄)을 60자 이내로 반환한다."""
    for line in (markdown or "").splitlines():
        s = re.sub(r'^[#>\-\*\s]+', '', line.strip())
        s = s.replace("**", "").replace("__", "").strip()
        if s:
            return s[:60]
    return fallback


def safe_user_id(user_id):
    # 퍼센트 인코딩은 역변환이 가능하므로 서로 다른 사용자가 같은 경로를 공유하지 않는다.
    return quote(user_id, safe="@.") if user_id else "anonymous"


def make_article_key(user_id, now=None, prefix=config.STORAGE_PREFIX):
    """articles/<user>/<UTC 타임스탬프>.md 형식의 저장 키. 타임스탬프의 ':'와 '.'는 '-'로 바꾼다."""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(datetime.timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    stamp = stamp.replace(":", "-").replace(".", "-")
    return f"{prefix.strip('/')}/{safe_user_id(user_id)}/{stamp}.md"


def download_filename(markdown):
    title = article_title(markdown, "")
    if not title:
        return config.DEFAULT_DOWNLOAD_NAME
    name = re.sub(r'[\\/:*?"<>|\s]+', '_', title).strip('_.')[:60]
    return f"{name}.md" if name else config.DEFAULT_DOWNLOAD_NAME

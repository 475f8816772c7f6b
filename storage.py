# filename: storage.py

# -----------------------------------------------------------------------------
# [저장소 모듈]
# 완성된 기사를 Cloudflare R2(S3 호환 API)에 저장/조회/삭제/공유한다.
# 객체 하나 = Markdown 기사 하나. 키는 articles/<사용자>/<타임스탬프>.md 형식.
# -----------------------------------------------------------------------------

import datetime
import logging
from urllib.parse import unquote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

import config
import core

logger = logging.getLogger(__name__)

MARKDOWN_CONTENT_TYPE = "text/markdown; charset=utf-8"
_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


class StorageError(RuntimeError):
    """S3 호출 실패를 UI에 보여줄 수 있는 메시지로 감싼 예외."""


def _error_message(exc):
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        return f"{err.get('Code', 'Error')}: {err.get('Message', str(exc))}"
    return str(exc)


def build_client(settings):
    """R2 호환 boto3 S3 클라이언트. R2는 region "auto"와 path-style 주소를 쓴다."""
    cfg = Config(
        signature_version="s3v4",
        s3={"addressing_style": "path" if settings.get("force_path_style", True) else "auto"},
        retries={"max_attempts": 3, "mode": "standard"},
    )
    return boto3.client(
        "s3",
        endpoint_url=settings["endpoint"],
        region_name=settings.get("region") or "auto",
        aws_access_key_id=settings["access_key"],
        aws_secret_access_key=settings["secret_key"],
        config=cfg,
    )


def is_configured(settings):
    return bool(settings.get("endpoint") and settings.get("bucket")
                and settings.get("access_key") and settings.get("secret_key"))


def store_from_settings(settings):
    """설정이 빠져 있으면 None. 이때 앱은 저장 기능 없이 동작한다."""
    if not is_configured(settings):
        logger.info("Object storage is not configured; articles will not be saved")
        return None
    return ArticleStore(build_client(settings), settings["bucket"], settings.get("prefix") or config.STORAGE_PREFIX)


class ArticleStore:
    def __init__(self, client, bucket, prefix=config.STORAGE_PREFIX):
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")

    def user_prefix(self, user_id):
        return f"{self.prefix}/{core.safe_user_id(user_id)}/"

    def owns(self, key, user_id):
        return key.startswith(self.user_prefix(user_id))

    def save(self, content, user_id, now=None):
        """기사를 저장하고 생성된 키를 반환한다."""
        key = core.make_article_key(user_id, now=now, prefix=self.prefix)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content.encode("utf-8"),
                ContentType=MARKDOWN_CONTENT_TYPE,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to save article to %s: %s", key, e)
            raise StorageError(f"Failed to save article: {_error_message(e)}") from e
        logger.info("Article saved: s3://%s/%s", self.bucket, key)
        return key

    def list_articles(self, user_id=None):
        """
        저장된 기사 목록 (최신순). user_id가 None이면 전체 사용자(관리자용).
        각 항목: {"key", "size", "last_modified", "owner"}
        """
        prefix = self.user_prefix(user_id) if user_id is not None else f"{self.prefix}/"
        out = []
        token = None
        try:
            while True:
                kwargs = {"Bucket": self.bucket, "Prefix": prefix}
                if token:
                    kwargs["ContinuationToken"] = token
                resp = self.client.list_objects_v2(**kwargs)
                for c in resp.get("Contents", []):
                    key = c.get("Key", "")
                    if not key.endswith(".md"):
                        continue
                    rest = key[len(self.prefix) + 1:]
                    out.append({
                        "key": key,
                        "size": c.get("Size", 0),
                        "last_modified": c.get("LastModified"),
                        "owner": unquote(rest.split("/", 1)[0]) if "/" in rest else "",
                    })
                token = resp.get("NextContinuationToken")
                if not token:
                    break
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to list %s: %s", prefix, e)
            raise StorageError(f"Failed to list articles: {_error_message(e)}") from e

        out.sort(key=lambda a: (a["last_modified"] or _EPOCH, a["key"]), reverse=True)
        return out

    def read(self, key):
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read().decode("utf-8", errors="replace")
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to read %s: %s", key, e)
            raise StorageError(f"Failed to open article: {_error_message(e)}") from e

    def delete(self, key):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to delete %s: %s", key, e)
            raise StorageError(f"Failed to delete article: {_error_message(e)}") from e
        logger.info("Article deleted: s3://%s/%s", self.bucket, key)

    def share_url(self, key, expires=config.SHARE_LINK_EXPIRES):
        """서명된 다운로드 링크. R2의 최대 유효기간은 7일."""
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to sign %s: %s", key, e)
            raise StorageError(f"Failed to create share link: {_error_message(e)}") from e

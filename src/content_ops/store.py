"""Storage collaborator used by the action executor.

The engine only needs list/get/add/update on articles and read/update on the
company profile. Writes return the stored entity and raise StoreError when
the collaborator rejects them, so callers can fold the failure into the reply.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .models import Article, CompanyProfile


class StoreError(RuntimeError):
    """A write was rejected or could not be persisted."""


class ContentStore(Protocol):
    def list_articles(self) -> List[Article]: ...

    def get_article_by_id(self, article_id: str) -> Optional[Article]: ...

    def add_article(self, article: Article) -> Article: ...

    def update_article(self, article_id: str, changes: Dict[str, Any]) -> Article: ...

    def get_profile(self) -> CompanyProfile: ...

    def update_profile(self, changes: Dict[str, Any]) -> CompanyProfile: ...


class InMemoryContentStore:
    """Process-local store; article order is insertion order."""

    def __init__(
        self,
        articles: Iterable[Article] = (),
        profile: Optional[CompanyProfile] = None,
    ) -> None:
        self._articles: Dict[str, Article] = {a.id: a for a in articles}
        self._profile = profile or CompanyProfile()
        self._lock = Lock()

    def list_articles(self) -> List[Article]:
        with self._lock:
            return list(self._articles.values())

    def get_article_by_id(self, article_id: str) -> Optional[Article]:
        with self._lock:
            return self._articles.get(article_id)

    def add_article(self, article: Article) -> Article:
        with self._lock:
            if article.id in self._articles:
                raise StoreError(f"Article {article.id} already exists.")
            self._articles[article.id] = article
            try:
                self._persist()
            except StoreError:
                del self._articles[article.id]
                raise
        return article

    def update_article(self, article_id: str, changes: Dict[str, Any]) -> Article:
        with self._lock:
            current = self._articles.get(article_id)
            if current is None:
                raise StoreError(f"Article {article_id} does not exist.")
            updated = current.model_copy(update=changes)
            self._articles[article_id] = updated
            try:
                self._persist()
            except StoreError:
                self._articles[article_id] = current
                raise
        return updated

    def get_profile(self) -> CompanyProfile:
        with self._lock:
            return self._profile

    def update_profile(self, changes: Dict[str, Any]) -> CompanyProfile:
        with self._lock:
            previous = self._profile
            self._profile = previous.model_copy(update=changes)
            try:
                self._persist()
            except StoreError:
                self._profile = previous
                raise
            return self._profile

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held."""


def default_store_path() -> Path:
    """JSON store location (override via CONTENT_STORE_PATH)."""
    env_path = os.getenv("CONTENT_STORE_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "data" / "content.json"


class JsonContentStore(InMemoryContentStore):
    """Keeps the whole library in one JSON document, rewritten on every write."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else default_store_path()
        articles: List[Article] = []
        profile: Optional[CompanyProfile] = None
        if self.path.exists():
            data = json.loads(self.path.read_text(encoding="utf-8"))
            articles = [Article.model_validate(a) for a in data.get("articles", [])]
            if data.get("profile") is not None:
                profile = CompanyProfile.model_validate(data["profile"])
        super().__init__(articles, profile)

    def _persist(self) -> None:
        payload = {
            "profile": self._profile.model_dump(mode="json", by_alias=True),
            "articles": [
                a.model_dump(mode="json", by_alias=True) for a in self._articles.values()
            ],
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            tmp_path.replace(self.path)
        except OSError as exc:
            raise StoreError(f"Could not write {self.path}: {exc}") from exc

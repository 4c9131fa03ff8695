"""
JSON 파일 기반 저장소
개발/테스트용으로 DB 없이 로컬 파일에 컬렉션별 데이터 저장
"""

import copy
import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from loguru import logger

from marketplace.errors import StorageError
from marketplace.storage.base import BaseStorage, matches_filters, new_id, sort_documents


class JSONStorage(BaseStorage):
    """JSON 파일 기반 저장소 구현 (컬렉션당 파일 1개)"""

    def __init__(self, base_path: str = "./data"):
        """
        Args:
            base_path: 데이터 저장 경로
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

        # 메모리 캐시 및 락
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = Lock()

    def _collection_file(self, collection: str) -> Path:
        return self.base_path / f"{collection}.json"

    def _load(self, collection: str) -> Dict[str, Dict[str, Any]]:
        """컬렉션 파일 로드 (최초 1회)"""
        if collection in self._collections:
            return self._collections[collection]

        data: Dict[str, Dict[str, Any]] = {}
        path = self._collection_file(collection)
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                logger.info(f"{collection} 데이터 {len(data)}개 로드됨")
            except (OSError, ValueError) as e:
                logger.error(f"{collection} 데이터 로드 실패: {e}")
                raise StorageError("load", collection, e) from e

        self._collections[collection] = data
        return data

    def _save(self, collection: str):
        """메모리 데이터를 파일에 저장"""
        try:
            with open(self._collection_file(collection), "w", encoding="utf-8") as f:
                json.dump(
                    self._collections.get(collection, {}),
                    f,
                    ensure_ascii=False,
                    indent=2,
                    default=str,
                )
        except OSError as e:
            logger.error(f"{collection} 데이터 저장 실패: {e}")
            raise StorageError("save", collection, e) from e

    async def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._load(collection).get(str(document_id))
            return copy.deepcopy(document) if document is not None else None

    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[List[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            documents = [
                copy.deepcopy(doc)
                for doc in self._load(collection).values()
                if matches_filters(doc, filters)
            ]

        documents = sort_documents(documents, order_by)
        if limit is not None:
            documents = documents[:limit]
        return documents

    async def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            documents = self._load(collection)

            document = copy.deepcopy(data)
            document["id"] = str(document.get("id") or new_id())
            document.setdefault("createdAt", datetime.now(timezone.utc).isoformat())

            documents[document["id"]] = document
            self._save(collection)

        logger.debug(f"{collection} 문서 생성: {document['id']}")
        return copy.deepcopy(document)

    async def update(
        self, collection: str, document_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            documents = self._load(collection)
            document = documents.get(str(document_id))
            if document is None:
                return None

            document.update(copy.deepcopy(changes))
            document["id"] = str(document_id)
            document["updatedAt"] = datetime.now(timezone.utc).isoformat()
            self._save(collection)
            return copy.deepcopy(document)

    async def delete(self, collection: str, document_id: str) -> bool:
        with self._lock:
            documents = self._load(collection)
            if str(document_id) not in documents:
                return False
            del documents[str(document_id)]
            self._save(collection)

        logger.debug(f"{collection} 문서 삭제: {document_id}")
        return True

    def clear(self, collection: Optional[str] = None):
        """컬렉션 데이터 초기화 (테스트용)"""
        with self._lock:
            targets = [collection] if collection else list(self._collections)
            for name in targets:
                self._collections[name] = {}
                self._save(name)

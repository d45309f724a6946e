from __future__ import annotations

from copy import deepcopy
from typing import Dict, Iterable, List, Optional

from sqlalchemy import Column, Integer, String, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import TocRecord, TopicRecord

Base = declarative_base()


class TocModel(Base):
    __tablename__ = "tocs"
    href = Column(String, primary_key=True)
    locale = Column(String, primary_key=True)
    label = Column(String)
    order_index = Column(Integer)


class TopicModel(Base):
    __tablename__ = "topics"
    id = Column(Integer, primary_key=True, autoincrement=True)
    toc_href = Column(String, index=True)
    locale = Column(String, index=True)
    href = Column(String)
    label = Column(String)
    order_index = Column(Integer)


class ResourceTree:
    """
    Read-only view of the tocs available for one locale and their first-level
    topics. Working sets point into this tree; lookups are repeated on every
    restore and save, so implementations must reflect the current content.
    """

    def find_container(self, href: str) -> Optional[TocRecord]:
        raise NotImplementedError

    def children_of(self, toc: TocRecord) -> List[TopicRecord]:
        raise NotImplementedError

    def list_tocs(self) -> List[TocRecord]:
        raise NotImplementedError

    def save_toc(self, toc: TocRecord, topics: Iterable[TopicRecord]) -> None:
        raise NotImplementedError

    def find_item(self, toc_href: str, index: int) -> Optional[TopicRecord]:
        toc = self.find_container(toc_href)
        if toc is None:
            return None
        topics = self.children_of(toc)
        if index < 0 or index >= len(topics):
            return None
        return topics[index]


class InMemoryResourceTree(ResourceTree):
    """
    Simple in-memory tree for local runs and tests. Keeps copies of the
    records so callers cannot reshape the tree by mutating returned lists.
    """

    def __init__(self, locale: str = "en"):
        self.locale = locale
        self.tocs: Dict[str, TocRecord] = {}
        self.topics: Dict[str, List[TopicRecord]] = {}

    def find_container(self, href: str) -> Optional[TocRecord]:
        return self.tocs.get(href)

    def children_of(self, toc: TocRecord) -> List[TopicRecord]:
        return list(self.topics.get(toc.href, []))

    def list_tocs(self) -> List[TocRecord]:
        return sorted(self.tocs.values(), key=lambda t: (t.order_index, t.href))

    def save_toc(self, toc: TocRecord, topics: Iterable[TopicRecord]) -> None:
        self.tocs[toc.href] = deepcopy(toc)
        self.topics[toc.href] = sorted((deepcopy(t) for t in topics), key=lambda t: t.order_index)

    def remove_toc(self, href: str) -> None:
        self.tocs.pop(href, None)
        self.topics.pop(href, None)


class SqlAlchemyResourceTree(ResourceTree):
    """
    SQL-backed tree using SQLAlchemy. Works with SQLite/Postgres URLs.
    Every instance is scoped to one locale.
    """

    def __init__(self, database_url: str, locale: str = "en"):
        self.locale = locale
        self.engine = create_engine(database_url, future=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    @staticmethod
    def _to_toc(model: TocModel) -> TocRecord:
        return TocRecord(
            href=model.href,
            label=model.label,
            locale=model.locale,
            order_index=int(model.order_index or 0),
        )

    @staticmethod
    def _to_topic(model: TopicModel) -> TopicRecord:
        return TopicRecord(
            toc_href=model.toc_href,
            href=model.href,
            label=model.label,
            order_index=int(model.order_index or 0),
        )

    def find_container(self, href: str) -> Optional[TocRecord]:
        with self._session() as session:
            model = session.get(TocModel, (href, self.locale))
            if not model:
                return None
            return self._to_toc(model)

    def children_of(self, toc: TocRecord) -> List[TopicRecord]:
        with self._session() as session:
            stmt = (
                select(TopicModel)
                .where(TopicModel.toc_href == toc.href, TopicModel.locale == self.locale)
                .order_by(TopicModel.order_index, TopicModel.id)
            )
            return [self._to_topic(m) for m in session.execute(stmt).scalars().all()]

    def list_tocs(self) -> List[TocRecord]:
        with self._session() as session:
            stmt = (
                select(TocModel)
                .where(TocModel.locale == self.locale)
                .order_by(TocModel.order_index, TocModel.href)
            )
            return [self._to_toc(m) for m in session.execute(stmt).scalars().all()]

    def save_toc(self, toc: TocRecord, topics: Iterable[TopicRecord]) -> None:
        """Insert or replace a toc together with the full list of its topics."""
        with self._session() as session:
            session.merge(
                TocModel(
                    href=toc.href,
                    locale=self.locale,
                    label=toc.label,
                    order_index=toc.order_index,
                )
            )
            session.execute(
                delete(TopicModel).where(TopicModel.toc_href == toc.href, TopicModel.locale == self.locale)
            )
            for topic in topics:
                session.add(
                    TopicModel(
                        toc_href=toc.href,
                        locale=self.locale,
                        href=topic.href,
                        label=topic.label,
                        order_index=topic.order_index,
                    )
                )
            session.commit()

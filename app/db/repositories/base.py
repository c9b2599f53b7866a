from typing import Any, Generic, Optional, Sequence, Type, TypeVar
from sqlmodel import SQLModel, Session, select, func

from app.utils.time import utcnow

ModelT = TypeVar("ModelT", bound=SQLModel)

class BaseRepository(Generic[ModelT]):
    """
    Persistance générique d'une table SQLModel (aucune règle métier ici).

    Les sous-classes fixent `model` et ajoutent leurs requêtes propres.
    Toute écriture accepte `commit=` : avec commit=False on se contente d'un flush
    (ids disponibles) et c'est le service qui valide la transaction d'un bloc.
    """

    model: Type[ModelT]

    def __init__(self, session: Session):
        self.session = session

    def _persist(self, entity: Optional[ModelT], commit: bool) -> None:
        if commit:
            self.session.commit()
            if entity is not None:
                self.session.refresh(entity)
        else:
            self.session.flush()

    # ---------- lecture ----------

    def get(self, id_: Any) -> Optional[ModelT]:
        return self.session.get(self.model, id_)

    def list(self, offset: int = 0, limit: int = 100) -> Sequence[ModelT]:
        stmt = select(self.model).order_by(self.model.id.asc()).offset(offset).limit(limit)
        return self.session.exec(stmt).all()

    def count(self) -> int:
        return int(self.session.exec(select(func.count(self.model.id))).one())

    # ---------- écriture ----------

    def create(self, *, commit: bool = True, **fields) -> ModelT:
        entity = self.model(**fields)
        self.session.add(entity)
        self._persist(entity, commit)
        return entity

    def update(self, entity: ModelT, *, commit: bool = True, **changes) -> ModelT:
        """Applique `changes` ; updated_at suit automatiquement sauf s'il est fourni."""
        changes.setdefault("updated_at", utcnow())
        for key, value in changes.items():
            if hasattr(entity, key):
                setattr(entity, key, value)
        self.session.add(entity)
        self._persist(entity, commit)
        return entity

    def delete(self, entity: ModelT, *, commit: bool = True) -> None:
        self.session.delete(entity)
        self._persist(None, commit)

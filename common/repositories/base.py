from contextlib import asynccontextmanager
from typing import Generic, TypeVar, Optional, List, Type, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from pydantic import BaseModel

from common.core.exceptions import AuthorizationError
from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session
from packages.auth.models.domain.authorization_context import AuthorizationContext

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Base repository with support for both explicit and lazy session management.

    1. Explicit session: pass db_session to the constructor and the caller
       owns its lifecycle. Handy in tests and one-off scripts.
    2. Lazy session: omit db_session and every operation goes through
       get_session(), joining the enclosing transaction() if there is one.
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
        db_session: Optional[AsyncSession] = None,
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class
        self._explicit_session = db_session

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._explicit_session is not None:
            yield self._explicit_session
        else:
            async with get_session() as session:
                yield session

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        """Convert database entity to domain model."""
        return self.domain_class.model_validate(entity)

    def _entities_to_domain(self, entities: List[EntityType]) -> List[DomainModelType]:
        """Convert list of database entities to domain models."""
        return [self._entity_to_domain(entity) for entity in entities]

    @trace_span
    async def get(self, id: int) -> Optional[DomainModelType]:
        async with self._get_session() as session:
            result = await session.execute(
                select(self.entity_class).where(self.entity_class.id == id)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get_by_ids(self, ids: List[int]) -> List[DomainModelType]:
        """Get multiple entities by their IDs."""
        if not ids:
            return []

        async with self._get_session() as session:
            result = await session.execute(
                select(self.entity_class).where(self.entity_class.id.in_(ids))
            )
            return self._entities_to_domain(result.scalars().all())


class OrganizationScopedRepository(BaseRepository[EntityType, DomainModelType]):
    """
    Repository whose rows belong to one organization.

    Every public method takes the caller's AuthorizationContext. Reads are
    filtered to the context's organization and writes for any other
    organization raise AuthorizationError.
    """

    def _authorize(self, ctx: AuthorizationContext, organization_id: str) -> None:
        if not ctx.allows(organization_id):
            raise AuthorizationError(
                f"Context for {ctx.organization_id!r} cannot act on organization {organization_id!r}"
            )

    def _add_organization_filter(self, query, ctx: AuthorizationContext):
        """Add organization filtering to any query."""
        if ctx.organization_id is None:
            raise AuthorizationError("Authorization context has no organization")
        return query.where(self.entity_class.organization_id == ctx.organization_id)

    @trace_span
    async def get_scoped(
        self, ctx: AuthorizationContext, id: int
    ) -> Optional[DomainModelType]:
        query = self._add_organization_filter(
            select(self.entity_class).where(self.entity_class.id == id), ctx
        ).execution_options(populate_existing=True)
        async with self._get_session() as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def create(
        self, ctx: AuthorizationContext, create_model: CreateModelType
    ) -> DomainModelType:
        """Create a new entity from a typed create model."""
        data = create_model.model_dump(exclude_none=True)
        self._authorize(ctx, data.get("organization_id"))
        db_obj = self.entity_class(**data)
        async with self._get_session() as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def update(
        self, ctx: AuthorizationContext, id: int, update_model: UpdateModelType
    ) -> Optional[DomainModelType]:
        """Update an entity with a typed update model."""
        data = update_model.model_dump(exclude_unset=True)
        if not data:
            return await self.get_scoped(ctx, id)

        query = self._add_organization_filter(
            update(self.entity_class).where(self.entity_class.id == id), ctx
        )
        async with self._get_session() as session:
            await session.execute(query.values(data))
            await session.flush()
        return await self.get_scoped(ctx, id)

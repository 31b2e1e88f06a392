"""Application bootstrap and lifecycle management."""

from datetime import timedelta
from typing import Protocol

from .config import Settings, resolve_db_path
from .dialogue import DialogueSessionResolver, HttpDialogueClient, IDialogueClient
from .logging_config import get_logger
from .matching import InputResolutionEngine
from .pipeline import ITranscriber, MessagePipeline
from .state import SessionStateStore, UserLock
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        settings: Settings | None = None,
        dialogue_client: IDialogueClient | None = None,
        transcriber: ITranscriber | None = None,
    ):
        self._settings = settings or Settings.from_env()
        env_db_path = self._settings.database_url if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._injected_client = dialogue_client
        self._transcriber = transcriber

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._tracker: ITracker | None = None
        self._state: SessionStateStore | None = None
        self._lock: UserLock | None = None
        self._engine: InputResolutionEngine | None = None
        self._client: IDialogueClient | None = None
        self._resolver: DialogueSessionResolver | None = None
        self._pipeline: MessagePipeline | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")
        settings = self._settings

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Tracker (depends on Storage)
        self._tracker = Tracker(self._storage)

        # 3. State store (depends on Storage + Tracker), warmed from durable rows
        self._state = SessionStateStore(
            self._storage,
            self._tracker,
            ttl=timedelta(minutes=settings.choice_ttl_minutes),
            sweep_interval=settings.sweep_interval_seconds,
        )
        await self._state.load_persisted()
        await self._state.start()
        logger.info("Session state store started")

        # 4. Lock and matching engine (no dependencies)
        self._lock = UserLock()
        self._engine = InputResolutionEngine(
            language=settings.language, min_score=settings.match_min_score
        )

        # 5. Dialogue client and resolver
        self._client = self._injected_client or HttpDialogueClient(
            api_base=settings.dialogue_api_base,
            api_key=settings.dialogue_api_key,
            default_flow_id=settings.default_flow_id,
            timeout=settings.dialogue_timeout,
        )
        self._resolver = DialogueSessionResolver(
            self._client, self._state, self._tracker, settings.default_flow_id
        )

        # 6. Pipeline (depends on everything above)
        self._pipeline = MessagePipeline(
            lock=self._lock,
            state=self._state,
            engine=self._engine,
            resolver=self._resolver,
            tracker=self._tracker,
            transcriber=self._transcriber,
            wa_id_pattern=settings.wa_id_pattern,
            reset_keywords=settings.reset_keywords,
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._pipeline:
            await self._pipeline.drain()
        if self._state:
            await self._state.stop()
        if self._client:
            await self._client.close()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._pipeline:
            await self._pipeline.drain()

        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

        if self._state:
            self._state.clear_cache()
            logger.info("Reset complete")

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def tracker(self) -> ITracker:
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def state(self) -> SessionStateStore:
        """Get session state store instance."""
        if not self._state:
            raise RuntimeError("Application not started")
        return self._state

    @property
    def lock(self) -> UserLock:
        if not self._lock:
            raise RuntimeError("Application not started")
        return self._lock

    @property
    def resolver(self) -> DialogueSessionResolver:
        if not self._resolver:
            raise RuntimeError("Application not started")
        return self._resolver

    @property
    def pipeline(self) -> MessagePipeline:
        """Get message pipeline instance."""
        if not self._pipeline:
            raise RuntimeError("Application not started")
        return self._pipeline

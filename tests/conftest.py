"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from photo_studio.config import Settings
from photo_studio.containers import AppContainer
from photo_studio.services.assets import (
    AssetInfo,
    AssetStorage,
    SourceImage,
    StoredAsset,
    detect_mime_type,
)
from photo_studio.services.batch import BatchPolicy, BatchService
from photo_studio.services.generation import GenerationService
from photo_studio.services.progress import ProgressService
from photo_studio.services.providers import (
    GeneratedImage,
    ImageClient,
    ProviderAdapter,
    ProviderPricing,
    ProviderRegistry,
)
from photo_studio.services.sessions import SessionService
from photo_studio.services.store import InMemorySessionStore
from photo_studio.services.variations import VariationEngine

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"fake-png-body"


@dataclass
class FakeImageClient(ImageClient):
    """Fake vendor client that records calls and can fail or stall."""

    model: str = "fake-model"
    data: bytes = PNG_BYTES
    error: Exception | None = None
    delay_seconds: float = 0.0
    fail_when: str | None = None
    calls: list[tuple[str, SourceImage | None]] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    async def generate(self, prompt: str, source: SourceImage | None) -> GeneratedImage:
        self.calls.append((prompt, source))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            else:
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            if self.fail_when is not None and self.fail_when in prompt:
                raise RuntimeError(f"rejected prompt: {prompt}")
            return GeneratedImage(data=self.data, mime_type="image/png")
        finally:
            self.in_flight -= 1


@dataclass
class InMemoryAssetStorage(AssetStorage):
    """In-memory asset storage for tests."""

    uploads: dict[str, bytes] = field(default_factory=dict)
    generated: dict[str, bytes] = field(default_factory=dict)
    reads: int = 0

    async def save_upload(self, original_name: str, data: bytes) -> str:
        name = f"upload-{len(self.uploads) + 1}-{original_name}"
        self.uploads[name] = data
        return name

    def upload_exists(self, name: str) -> bool:
        return name in self.uploads

    async def read_source(self, name: str) -> SourceImage:
        self.reads += 1
        if name not in self.uploads:
            raise FileNotFoundError(name)
        data = self.uploads[name]
        return SourceImage(name=name, data=data, mime_type=detect_mime_type(data))

    async def save_generated(self, filename: str, data: bytes) -> StoredAsset:
        self.generated[filename] = data
        return StoredAsset(path=f"memory/{filename}", url=f"/generated/{filename}")

    def list_uploads(self) -> list[AssetInfo]:
        return _infos(self.uploads, "/uploads")

    def list_generated(self) -> list[AssetInfo]:
        return _infos(self.generated, "/generated")


def _infos(files: dict[str, bytes], prefix: str) -> list[AssetInfo]:
    now = datetime.now(tz=UTC)
    return [
        AssetInfo(filename=name, size=len(data), modified_at=now, url=f"{prefix}/{name}")
        for name, data in files.items()
    ]


def make_adapter(  # noqa: PLR0913
    name: str,
    client: ImageClient | None,
    storage: AssetStorage,
    *,
    variations: VariationEngine | None = None,
    pricing: ProviderPricing | None = None,
    timeout_seconds: float = 5.0,
    image_conditioned: bool = True,
) -> ProviderAdapter:
    return ProviderAdapter(
        name=name,
        client=client,
        storage=storage,
        variations=variations or VariationEngine(),
        pricing=pricing or ProviderPricing(input_cost=0.01, output_cost=0.02),
        timeout_seconds=timeout_seconds,
        image_conditioned=image_conditioned,
    )


def make_registry(
    storage: AssetStorage, clients: dict[str, ImageClient | None]
) -> ProviderRegistry:
    return ProviderRegistry(
        {name: make_adapter(name, client, storage) for name, client in clients.items()}
    )


def new_session(store: InMemorySessionStore, storage: InMemoryAssetStorage) -> str:
    storage.uploads["photo.png"] = PNG_BYTES
    return store.create("photo.png", "photo.png").id


async def wait_for_task(store: InMemorySessionStore, session_id: str) -> None:
    """Wait until the session's background work has finished."""
    task = store.task_for(session_id)
    if task is not None:
        await asyncio.wait_for(asyncio.shield(task), timeout=5)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        generated_dir=str(tmp_path / "generated"),
        comfyui_enabled=False,
        batch_chunk_pause_seconds=0,
    )


@pytest.fixture
def storage() -> InMemoryAssetStorage:
    return InMemoryAssetStorage()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def alpha_client() -> FakeImageClient:
    return FakeImageClient(model="alpha-v1")


@pytest.fixture
def beta_client() -> FakeImageClient:
    return FakeImageClient(model="beta-v1")


@pytest.fixture
def container(
    settings: Settings,
    store: InMemorySessionStore,
    storage: InMemoryAssetStorage,
    alpha_client: FakeImageClient,
    beta_client: FakeImageClient,
) -> AppContainer:
    variations = VariationEngine()
    registry = make_registry(storage, {"alpha": alpha_client, "beta": beta_client})

    async def close_resources() -> None:
        await store.aclose()

    return AppContainer(
        settings=settings,
        store=store,
        storage=storage,
        registry=registry,
        variations=variations,
        session_service=SessionService(store=store, storage=storage),
        generation_service=GenerationService(store=store, registry=registry),
        batch_service=BatchService(
            store=store,
            registry=registry,
            variations=variations,
            policy=BatchPolicy(chunk_size=4, pause_seconds=0),
        ),
        progress_service=ProgressService(store),
        close_resources=close_resources,
    )

"""Admin updates to generation settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from cyberquiz.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from cyberquiz.buffer.maintainer import BufferMaintainer
    from cyberquiz.core.types import GenerationSettings
    from cyberquiz.storage.base import QuestionStoreProtocol

logger = logging.getLogger(__name__)


class SettingsUpdate(BaseModel):
    """A partial settings change; omitted fields keep their current value.

    Example:
        >>> SettingsUpdate(buffer_size=20, enabled_domains=["Cryptography"])
    """

    model_config = {"extra": "forbid"}

    buffer_size: int | None = Field(default=None, ge=0)
    auto_refill_enabled: bool | None = None
    structured_space_enabled: bool | None = None
    enabled_domains: list[str] | None = Field(default=None, min_length=1)
    enabled_skill_types: list[str] | None = Field(default=None, min_length=1)
    enabled_difficulties: list[str] | None = Field(default=None, min_length=1)
    enabled_granularities: list[str] | None = Field(default=None, min_length=1)
    use_context: bool | None = None
    default_topic: str | None = Field(default=None, min_length=1)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SettingsService:
    """Reads and updates the admin-editable generation settings."""

    def __init__(self, store: QuestionStoreProtocol, maintainer: BufferMaintainer | None = None) -> None:
        self.store = store
        self.maintainer = maintainer

    async def get(self) -> GenerationSettings:
        return await self.store.get_settings()

    async def update(self, update: SettingsUpdate | dict[str, Any]) -> GenerationSettings:
        """Apply a partial update.

        Refill is re-triggered when auto-refill is on afterwards and was
        just switched on, or the target size changed.

        Args:
            update: The change, as a model or a plain mapping.

        Returns:
            The saved settings.

        Raises:
            ConfigurationError: If the mapping fails validation.
        """
        if not isinstance(update, SettingsUpdate):
            try:
                update = SettingsUpdate.model_validate(update)
            except ValidationError as e:
                msg = f"Invalid settings update: {e.errors()[0]['loc'][0]}: {e.errors()[0]['msg']}"
                raise ConfigurationError(msg) from e

        changes = update.changes()
        current = await self.store.get_settings()
        saved = await self.store.save_settings(current.model_copy(update=changes))
        logger.info(f"Generation settings updated: {sorted(changes)}")

        refill_switched_on = saved.auto_refill_enabled and not current.auto_refill_enabled
        target_changed = saved.buffer_size != current.buffer_size
        if self.maintainer is not None and saved.auto_refill_enabled and (refill_switched_on or target_changed):
            await self.maintainer.ensure_filled()
        return saved

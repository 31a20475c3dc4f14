import logging
from typing import Any, Dict, List

from dive_platform.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from dive_platform.db.base import MobileDevice
from dive_platform.repositories.mobile_repository import DeviceRepository
from dive_platform.schemas.mobile import DeviceRegisterRequest
from dive_platform.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class DeviceService:
    """Registered mobile devices and their push tokens."""

    def __init__(self, device_repo: DeviceRepository):
        self.device_repo = device_repo

    def register(self, user_id: str, request: DeviceRegisterRequest) -> MobileDevice:
        device = self.device_repo.get_by_identifier(user_id, request.device_identifier)
        created = device is None
        if created:
            device = MobileDevice(
                user_id=user_id,
                device_identifier=request.device_identifier,
                push_enabled=True,
            )
        device.device_type = request.device_type
        for key, value in request.details.items():
            setattr(device, key, value)
        device.is_active = True
        device.last_used_at = utcnow()
        device = self.device_repo.save(device)
        logger.info(
            "Device registered" if created else "Device re-registered",
            extra={"context": {"user_id": user_id, "device_id": device.id, "type": device.device_type}},
        )
        return device

    def list_devices(self, user_id: str) -> List[MobileDevice]:
        return self.device_repo.list_active(user_id)

    def get_device(self, user_id: str, device_id: str) -> MobileDevice:
        device = self.device_repo.get_by_id(device_id)
        if device is None:
            raise NotFoundError("Device")
        if device.user_id != user_id:
            raise ForbiddenError("Not authorized to manage this device")
        return device

    def update_device(self, user_id: str, device_id: str, changes: Dict[str, Any]) -> MobileDevice:
        device = self.get_device(user_id, device_id)
        if changes.get("push_token") and not (changes.get("push_token_type") or device.push_token_type):
            raise ValidationError(
                "Validation failed", {"push_token_type": "push_token_type is required with push_token"}
            )
        for key, value in changes.items():
            setattr(device, key, value)
        device.last_used_at = utcnow()
        return self.device_repo.save(device)

    def deactivate(self, user_id: str, device_id: str) -> MobileDevice:
        device = self.get_device(user_id, device_id)
        device.is_active = False
        device.push_token = None
        device = self.device_repo.save(device)
        logger.info("Device deactivated", extra={"context": {"user_id": user_id, "device_id": device.id}})
        return device

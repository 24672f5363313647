import logging

from filehub.core.ports.remote import RemoteService
from filehub.errors import (
    AlreadyExistsError,
    AlreadySharedError,
    FileHubError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
)
from filehub.models import (
    GrantView,
    Permission,
    Principal,
    RemoteFile,
    RemoteFolder,
    ShareGrant,
    TargetKind,
)

logger = logging.getLogger(__name__)

UNKNOWN_RECIPIENT = "Unknown"


class SharingLedger:
    """Share grants on remote files and folders owned by the signed-in principal.

    Each grant is stored twice: as a row in the grant table and as an entry
    in the target's ``shared_with`` list, which recipients query.
    """

    def __init__(self, remote: RemoteService) -> None:
        self._remote = remote

    async def _require_principal(self) -> Principal:
        principal = await self._remote.current_principal()
        if principal is None:
            raise UnauthenticatedError()
        return principal

    async def _owned_target(
        self, target_id: str, principal: Principal
    ) -> tuple[TargetKind, RemoteFile | RemoteFolder]:
        remote_file = await self._remote.get_file_record(target_id)
        if remote_file is not None and remote_file.owner_id == principal.id:
            return TargetKind.FILE, remote_file
        folder = await self._remote.get_folder(target_id)
        if folder is not None and folder.owner_id == principal.id:
            return TargetKind.FOLDER, folder
        # Missing targets are reported like foreign ones.
        raise ForbiddenError(f"You do not own {target_id}")

    async def share(
        self,
        target_id: str,
        recipient_email: str,
        permission: Permission = Permission.VIEW,
    ) -> ShareGrant:
        principal = await self._require_principal()
        recipient = await self._remote.find_principal_by_email(recipient_email)
        kind, target = await self._owned_target(target_id, principal)

        if recipient.id in target.shared_with:
            raise AlreadySharedError(f"{target.name} is already shared with {recipient.email}")
        grant = ShareGrant(
            target_id=target_id,
            target_kind=kind,
            owner_id=principal.id,
            recipient_id=recipient.id,
            permission=permission,
        )
        try:
            grant = await self._remote.insert_grant(grant)
        except AlreadyExistsError as exc:
            raise AlreadySharedError(f"{target.name} is already shared with {recipient.email}") from exc
        await self._remote.set_shared_with(target_id, [*target.shared_with, recipient.id])
        logger.info("Shared %s %s with %s (%s)", kind.value, target_id, recipient.email, permission.value)
        return grant

    async def revoke(self, target_id: str, recipient_id: str) -> None:
        principal = await self._require_principal()
        kind, target = await self._owned_target(target_id, principal)

        removed = await self._remote.delete_grant(target_id, recipient_id)
        listed = recipient_id in target.shared_with
        if not removed and not listed:
            raise NotFoundError(f"{target.name} is not shared with {recipient_id}")
        if listed:
            await self._remote.set_shared_with(target_id, [pid for pid in target.shared_with if pid != recipient_id])
        logger.info("Revoked %s %s from %s", kind.value, target_id, recipient_id)

    async def list_grants(self, target_id: str) -> list[GrantView]:
        principal = await self._require_principal()
        await self._owned_target(target_id, principal)
        grants = await self._remote.list_grants(target_id)
        if not grants:
            return []
        try:
            principals = await self._remote.find_principals([g.recipient_id for g in grants])
        except FileHubError as exc:
            logger.warning("Recipient lookup failed for %s: %s", target_id, exc)
            principals = []
        labels = {p.id: p.email for p in principals}
        return [
            GrantView(
                recipient_id=grant.recipient_id,
                label=labels.get(grant.recipient_id, UNKNOWN_RECIPIENT),
                permission=grant.permission,
            )
            for grant in grants
        ]

    async def list_shared_with_me(self) -> list[RemoteFile | RemoteFolder]:
        principal = await self._require_principal()
        return await self._remote.list_shared_with(principal.id)

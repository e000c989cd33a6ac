"""Owner profile, profile picture and email verification."""

import hmac
import logging
import secrets
from collections.abc import Mapping
from typing import Any

from menu_catalog_service.exceptions import ConflictError, InternalError, InvalidInputError
from menu_catalog_service.models.billing_models import OwnerProfile, ProfilePatch, ProfileUpdate
from menu_catalog_service.models.catalog_models import RequestContext, parse_input
from menu_catalog_service.observability import traced
from menu_catalog_service.repositories.catalog_repositories import OwnerRepository
from menu_catalog_service.repositories.database import Database
from menu_catalog_service.services.asset_storage import AssetStorage
from menu_catalog_service.services.email_service import EmailService

logger = logging.getLogger(__name__)

PROFILE_IMAGE_FOLDER = "user_profiles"
PROFILE_IMAGE_MAX_BYTES = 2 * 1024 * 1024


class AccountService:
    """Reads and updates the caller's owner profile."""

    def __init__(
        self,
        database: Database,
        email_service: EmailService,
        public_app_url: str,
        asset_storage: AssetStorage | None = None,
    ) -> None:
        """Initialize the account service.

        Args:
            database: Database providing one transaction per operation
            email_service: Sender for verification emails
            public_app_url: Origin used to build verification links
            asset_storage: Storage for profile pictures; uploads fail when not configured
        """
        self.database = database
        self.email_service = email_service
        self.public_app_url = public_app_url.rstrip("/")
        self.asset_storage = asset_storage

    def verification_link(self, token: str) -> str:
        """Link that confirms an email change."""
        return f"{self.public_app_url}/verify-email?token={token}"

    @traced("account.get_profile")
    def get_profile(self, context: RequestContext) -> OwnerProfile:
        """Get the caller's profile; callers without an owner row see their identity."""
        with self.database.transaction("get_profile", owner_id=context.owner_id) as session:
            owner = OwnerRepository(session).get(context.owner_id)
            if owner is not None:
                return OwnerProfile.model_validate(owner)

        identity = context.identity
        return OwnerProfile(
            id=identity.user_id,
            email=identity.email,
            name=identity.name,
            email_verified=identity.email_verified,
        )

    @traced("account.update_profile")
    def update_profile(self, context: RequestContext, patch: ProfilePatch | Mapping[str, Any]) -> ProfileUpdate:
        """Update name, image or email.

        Changing the email marks it unverified and mails a verification link to
        the new address. A failure to send that email does not undo the change.

        Args:
            context: Request context of the caller
            patch: Fields to change

        Returns:
            ProfileUpdate: Updated profile and whether a verification email went out

        Raises:
            ConflictError: If the new email belongs to another owner
            InvalidInputError: If a field fails validation
        """
        patch = parse_input(ProfilePatch, patch)
        changes = patch.model_dump(exclude_unset=True)
        token: str | None = None

        with self.database.transaction("update_profile", owner_id=context.owner_id) as session:
            owners = OwnerRepository(session)
            owner = owners.ensure(context.identity)

            new_email = changes.get("email")
            if new_email and new_email != (owner.email or "").lower():
                existing = owners.get_by_email(new_email)
                if existing is not None and existing.id != owner.id:
                    raise ConflictError("Email already in use")

                token = secrets.token_urlsafe(32)
                owner.email = new_email
                owner.email_verified = False
                owner.email_verification_token = token

            if changes.get("name"):
                owner.name = changes["name"]
            if "image" in changes:
                owner.image = changes["image"] or None

            session.flush()
            profile = OwnerProfile.model_validate(owner)

        if token is None:
            return ProfileUpdate(profile=profile)

        logger.info(f"Email changed for owner {context.owner_id}, verification required")
        sent = self.email_service.send_verification_email(new_email, self.verification_link(token))
        if not sent:
            logger.warning(f"Verification email to {new_email} was not sent")

        return ProfileUpdate(
            message="Profile updated. Please verify your new email address.",
            profile=profile,
            email_changed=True,
            verification_email_sent=sent,
        )

    @traced("account.verify_email")
    def verify_email(self, context: RequestContext, token: str) -> OwnerProfile:
        """Confirm a changed email with the token from the verification link.

        Raises:
            InvalidInputError: If the token does not match the caller's pending change
        """
        with self.database.transaction("verify_email", owner_id=context.owner_id) as session:
            owner = OwnerRepository(session).get(context.owner_id)
            pending = owner.email_verification_token if owner is not None else None

            if not token or not pending or not hmac.compare_digest(pending, token):
                raise InvalidInputError("Invalid or expired verification token", field="token")

            owner.email_verified = True
            owner.email_verification_token = None
            session.flush()
            profile = OwnerProfile.model_validate(owner)

        logger.info(f"Email verified for owner {context.owner_id}")
        return profile

    def _require_storage(self) -> AssetStorage:
        if self.asset_storage is None:
            logger.error("Profile image requested but asset storage is not configured")
            raise InternalError("Image upload is not available")
        return self.asset_storage

    @traced("account.upload_profile_image")
    def upload_profile_image(
        self,
        context: RequestContext,
        data: bytes,
        filename: str | None,
        content_type: str | None,
    ) -> OwnerProfile:
        """Store a new profile picture and replace the previous one.

        The previous picture is removed from storage after the profile points
        at the new one; a failed removal is only logged.

        Args:
            context: Request context of the caller
            data: Image content, at most 2MB
            filename: Original file name
            content_type: MIME type reported by the client

        Returns:
            OwnerProfile: Profile with the new ``image`` URL

        Raises:
            InvalidInputError: If the file is empty, not an image, or too large
            InternalError: If storage is unavailable or rejects the upload
        """
        storage = self._require_storage()
        asset = storage.upload_image(
            data,
            filename,
            content_type,
            folder=PROFILE_IMAGE_FOLDER,
            max_bytes=PROFILE_IMAGE_MAX_BYTES,
        )
        if asset is None:
            raise InternalError("Failed to upload profile image")

        with self.database.transaction("upload_profile_image", owner_id=context.owner_id) as session:
            owner = OwnerRepository(session).ensure(context.identity)
            previous_file_id = owner.image_file_id
            owner.image = asset.url
            owner.image_file_id = asset.file_id
            session.flush()
            profile = OwnerProfile.model_validate(owner)

        if previous_file_id and previous_file_id != asset.file_id:
            storage.delete_image(previous_file_id)

        logger.info(f"Profile image updated for owner {context.owner_id}")
        return profile

    @traced("account.remove_profile_image")
    def remove_profile_image(self, context: RequestContext) -> OwnerProfile:
        """Clear the caller's profile picture and delete the stored file.

        Raises:
            InternalError: If storage is unavailable
        """
        storage = self._require_storage()

        with self.database.transaction("remove_profile_image", owner_id=context.owner_id) as session:
            owner = OwnerRepository(session).ensure(context.identity)
            previous_file_id = owner.image_file_id
            owner.image = None
            owner.image_file_id = None
            session.flush()
            profile = OwnerProfile.model_validate(owner)

        if previous_file_id:
            storage.delete_image(previous_file_id)

        logger.info(f"Profile image removed for owner {context.owner_id}")
        return profile

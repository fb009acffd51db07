"""
Attachment service for files uploaded against tasks.

Files go to Django's default storage (see config/storage.py); the row keeps
the original name, MIME type, size and a SHA-256 of the content.
"""
import hashlib
import logging
from typing import List
from uuid import UUID

from django.core.files.uploadedfile import UploadedFile
from django.db import DatabaseError, transaction

from apps.activity.audit_service import log_action, AuditAction
from apps.core.exceptions import NotFound, PermissionDenied, ValidationFailed, ErrorCode
from apps.identity.models import User
from apps.identity.permissions import Permissions, has_perm
from .dtos import AttachmentDTO
from .models import TaskAttachment
from .services import get_task, can_update_task, live_tasks

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    'image/jpeg': '.jpg',
    'image/png': '.png',
    'image/gif': '.gif',
    'image/webp': '.webp',
    'application/pdf': '.pdf',
    'text/plain': '.txt',
    'text/csv': '.csv',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': '.docx',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': '.xlsx',
}

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


def validate_upload_file(file: UploadedFile) -> None:
    """Raise ValidationFailed unless the upload is a non-empty file of an allowed type."""
    if not file.size:
        raise ValidationFailed("File is empty", code=ErrorCode.INVALID_INPUT, details={"file_size": 0})

    if file.size > MAX_FILE_SIZE:
        raise ValidationFailed(
            f"File too large. Maximum size is {MAX_FILE_SIZE // (1024 * 1024)} MB",
            code=ErrorCode.INVALID_INPUT,
            details={"file_size": file.size, "max_size": MAX_FILE_SIZE},
        )

    if file.content_type not in ALLOWED_MIME_TYPES:
        raise ValidationFailed(
            f"Invalid file type: {file.content_type}",
            code=ErrorCode.INVALID_FORMAT,
            details={"file_type": file.content_type, "allowed": sorted(ALLOWED_MIME_TYPES)},
        )


def content_hash(file: UploadedFile) -> str:
    digest = hashlib.sha256()
    for chunk in file.chunks():
        digest.update(chunk)
    file.seek(0)
    return digest.hexdigest()


def to_attachment_dto(attachment: TaskAttachment) -> AttachmentDTO:
    return AttachmentDTO(
        id=attachment.id,
        task_id=attachment.task_id,
        uploaded_by_id=attachment.uploaded_by_id,
        file_name=attachment.file_name,
        file_type=attachment.file_type,
        file_size=attachment.file_size,
        content_hash=attachment.content_hash,
        created_at=attachment.created_at,
    )


def upload_attachment(actor: User, task_id: UUID, file: UploadedFile) -> AttachmentDTO:
    """
    Store an uploaded file for a task.

    Requires task.update, or task.update_own for the task's assignee.
    """
    get_task(actor, task_id)
    task = live_tasks().get(id=task_id)
    if not can_update_task(actor, task):
        raise PermissionDenied(details={"required": Permissions.TASK_UPDATE})

    validate_upload_file(file)

    attachment = TaskAttachment(
        task=task,
        uploaded_by=actor,
        file_name=file.name,
        file_type=file.content_type,
        file_size=file.size,
        content_hash=content_hash(file),
    )
    attachment.file.save(file.name, file, save=False)
    try:
        with transaction.atomic():
            attachment.save()
    except DatabaseError:
        logger.exception(f"Could not record attachment for task {task.id}, removing {attachment.file.name}")
        attachment.file.storage.delete(attachment.file.name)
        raise

    logger.info(f"Attachment {attachment.id} ({attachment.file_size} bytes) added to task {task.id}")
    log_action(
        action=AuditAction.ATTACHMENT_ADDED,
        target_type="TaskAttachment",
        target_id=attachment.id,
        target_label=attachment.file_name,
        performed_by=actor,
        context={
            "project_id": str(task.project_id),
            "task_id": str(task.id),
            "file_type": attachment.file_type,
            "file_size": attachment.file_size,
        },
    )
    return to_attachment_dto(attachment)


def list_attachments(user: User, task_id: UUID) -> List[AttachmentDTO]:
    get_task(user, task_id)
    return [to_attachment_dto(a) for a in TaskAttachment.objects.filter(task_id=task_id).order_by('-created_at')]


def get_attachment(user: User, task_id: UUID, attachment_id: UUID) -> TaskAttachment:
    get_task(user, task_id)
    attachment = TaskAttachment.objects.select_related('task').filter(id=attachment_id, task_id=task_id).first()
    if attachment is None:
        raise NotFound("Attachment not found")
    return attachment


def delete_attachment(actor: User, task_id: UUID, attachment_id: UUID) -> None:
    """Remove the row and the stored file. Allowed for the uploader or task.delete."""
    attachment = get_attachment(actor, task_id, attachment_id)
    if attachment.uploaded_by_id != actor.id and not has_perm(actor, Permissions.TASK_DELETE):
        raise PermissionDenied(details={"required": Permissions.TASK_DELETE})

    storage, path = attachment.file.storage, attachment.file.name
    with transaction.atomic():
        attachment.delete()
        transaction.on_commit(lambda: storage.delete(path))

    logger.info(f"Attachment {attachment_id} deleted from task {task_id}")
    log_action(
        action=AuditAction.ATTACHMENT_DELETED,
        target_type="TaskAttachment",
        target_id=attachment_id,
        target_label=attachment.file_name,
        performed_by=actor,
        context={"project_id": str(attachment.task.project_id), "task_id": str(task_id)},
    )

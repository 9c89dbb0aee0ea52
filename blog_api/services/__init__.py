"""Convenience exports for service layer."""
from .delivery_service import (
    get_image_resolver,
    get_refresh_coordinator,
    setup_delivery,
    shutdown_delivery,
)
from .image_paths import ClassifiedReference, ImageKind, classify, clean_reference, suggest_path
from .image_refresh import ImageConsumer, RefreshCoordinator, RefreshState, VisibilitySource
from .image_repair import (
    FixSummary,
    ImageReferenceReport,
    analyze_image_references,
    fix_all_image_references,
    fix_image_reference,
)
from .image_resolver import (
    UNRESOLVED,
    CascadeStage,
    ImageCascade,
    ImageResolver,
    ResolvedURL,
    next_stage,
)
from .image_urls import ImageStrategy, probe_image_url, synthesize
from .post_service import (
    build_excerpt,
    create_comment,
    flatten_tags,
    get_published_post,
    list_approved_comments,
    list_published_posts,
    select_image_references,
    update_image_reference,
)
from .storage_service import (
    SigningFailed,
    StorageConfigurationError,
    StorageError,
    StorageUploadError,
    get_storage,
)

__all__ = [
    "get_image_resolver",
    "get_refresh_coordinator",
    "setup_delivery",
    "shutdown_delivery",
    "ClassifiedReference",
    "ImageKind",
    "classify",
    "clean_reference",
    "suggest_path",
    "ImageConsumer",
    "RefreshCoordinator",
    "RefreshState",
    "VisibilitySource",
    "FixSummary",
    "ImageReferenceReport",
    "analyze_image_references",
    "fix_all_image_references",
    "fix_image_reference",
    "UNRESOLVED",
    "CascadeStage",
    "ImageCascade",
    "ImageResolver",
    "ResolvedURL",
    "next_stage",
    "ImageStrategy",
    "probe_image_url",
    "synthesize",
    "build_excerpt",
    "create_comment",
    "flatten_tags",
    "get_published_post",
    "list_approved_comments",
    "list_published_posts",
    "select_image_references",
    "update_image_reference",
    "SigningFailed",
    "StorageConfigurationError",
    "StorageError",
    "StorageUploadError",
    "get_storage",
]

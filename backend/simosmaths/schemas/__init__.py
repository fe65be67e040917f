from .accounts import (
    AuthSession,
    Child,
    ChildCreateRequest,
    ChildUpdateRequest,
    LoginRequest,
    Profile,
    ProfileUpdateRequest,
    SignUpRequest,
)
from .base import ApiModel
from .billing import (
    PaymentDetailsResponse,
    PaymentRecord,
    Product,
    ProductPrice,
    SubscriptionCancelResponse,
    SubscriptionCreateRequest,
    SubscriptionCreateResponse,
    SubscriptionRecord,
    SubscriptionStatusResponse,
    TrialStartRequest,
    TrialStartResponse,
    WebhookAck,
)
from .catalog import (
    Exercise,
    ExerciseHistoryItem,
    ExerciseSubmitRequest,
    ExerciseSubmitResponse,
    Video,
    VideoProgress,
    VideoProgressRequest,
)
from .dashboard import (
    ChildWithStats,
    DashboardStatsResponse,
    ProgressStats,
    SubscriptionSummary,
)

__all__ = [
    "ApiModel",
    "AuthSession",
    "Child",
    "ChildCreateRequest",
    "ChildUpdateRequest",
    "ChildWithStats",
    "DashboardStatsResponse",
    "Exercise",
    "ExerciseHistoryItem",
    "ExerciseSubmitRequest",
    "ExerciseSubmitResponse",
    "LoginRequest",
    "PaymentDetailsResponse",
    "PaymentRecord",
    "Product",
    "ProductPrice",
    "Profile",
    "ProfileUpdateRequest",
    "ProgressStats",
    "SignUpRequest",
    "SubscriptionCancelResponse",
    "SubscriptionCreateRequest",
    "SubscriptionCreateResponse",
    "SubscriptionRecord",
    "SubscriptionStatusResponse",
    "SubscriptionSummary",
    "TrialStartRequest",
    "TrialStartResponse",
    "Video",
    "VideoProgress",
    "VideoProgressRequest",
    "WebhookAck",
]

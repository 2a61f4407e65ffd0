from scoreflow.models.organisation import Organisation, TeamMember
from scoreflow.models.assessment import Assessment, Category, Question, AnswerOption, ScoreTier
from scoreflow.models.lead import Lead, Response, Score
from scoreflow.models.feature_flag import FeatureFlag, FeatureFlagOverride
from scoreflow.models.audit import WebhookDeliveryLog, AuditLog
from scoreflow.models.narrative import Narrative

__all__ = [
    "Organisation", "TeamMember",
    "Assessment", "Category", "Question", "AnswerOption", "ScoreTier",
    "Lead", "Response", "Score",
    "FeatureFlag", "FeatureFlagOverride",
    "WebhookDeliveryLog", "AuditLog",
    "Narrative",
]

"""Pure rules that turn a detection response into an analysis and a triage
category. Nothing here touches the network or the database."""

from typing import Any, Dict, Iterable, Optional, Tuple

from envwatch.models.report import AIAnalysis
from envwatch.models.status import ReportCategory

GARBAGE_KEYWORDS = ("garbage", "trash", "plastic", "sampah", "waste", "litter", "rubbish")
CONFIDENCE_THRESHOLD = 0.4


def pick_best_prediction(predictions: Optional[Iterable[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    """Highest-confidence prediction, or None for an empty list. Ties keep the
    later prediction."""
    best = None
    for prediction in predictions or []:
        if best is None or best.get("confidence", 0) <= prediction.get("confidence", 0):
            best = prediction
    return best


def analysis_from_response(payload: Dict[str, Any]) -> AIAnalysis:
    best = pick_best_prediction(payload.get("predictions"))
    if best is None:
        return AIAnalysis(detected=False, class_="Unknown", confidence=0.0, raw_result=payload)
    return AIAnalysis(
        detected=True,
        class_=str(best.get("class", "Unknown")),
        confidence=float(best.get("confidence", 0.0)),
        raw_result=payload,
    )


def categorize(analysis: AIAnalysis) -> Tuple[ReportCategory, bool]:
    """Return (category, ai_status). ai_status is True only when the model
    settled the category without a human."""
    label = analysis.class_.lower()
    if (
        analysis.detected
        and any(keyword in label for keyword in GARBAGE_KEYWORDS)
        and analysis.confidence > CONFIDENCE_THRESHOLD
    ):
        return ReportCategory.SAMPAH, True
    return ReportCategory.BUTUH_VERIFIKASI, False

"""
駐車場レコードの用途区分判定

過去の版で 2 種類の判定方式が併存し、同じレコードでも結果が食い違う。
両方を名前付きの方式として実装する。

- kana_table（既定）: ナンバープレートの分類文字（かな/自衛隊の英字）を表で引く
- stay_duration: 滞在時間と地域から推定する

方式ごとに読む項目が異なり、判定できるレコード種別が限られる。
設定で選んだ方式はそれが判定できる種別に使い、判定できない種別には
判定可能な方式を割り当てる（build_usage_classifiers）。
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, Optional

from ...logger.app_logger import get_logger
from ...utils.config_loader import (
    KANA_TABLE_STRATEGY,
    STAY_DURATION_STRATEGY,
    UsageClassificationSettings,
)
from ..models import RecordKind, UsageCategory, to_int, to_text

logger = get_logger(__name__)

COMMERCIAL_KANA = frozenset("あいうえおかきくけこ")
RENTAL_KANA = frozenset("われ")
MILITARY_KANA = frozenset("よ")
MILITARY_ALPHA = frozenset("EHKMTY")

USAGE_KINDS = (RecordKind.PARKING, RecordKind.PARKING_FLOW)


def classify_kana(kana: Optional[str]) -> UsageCategory:
    """分類文字 1 文字から用途区分を返す。

    判定順は 自衛隊 → レンタカー → 事業用 → 自家用。'れ' と 'よ' は
    自家用の範囲にも含まれるが、先に判定される区分が優先される。
    未登録・未入力は自家用とする。
    """
    text = to_text(kana)
    if not text:
        return UsageCategory.PRIVATE
    if text.upper() in MILITARY_ALPHA or text in MILITARY_KANA:
        return UsageCategory.OTHER
    if text in RENTAL_KANA:
        return UsageCategory.RENTAL
    if text in COMMERCIAL_KANA:
        return UsageCategory.COMMERCIAL
    return UsageCategory.PRIVATE


class UsageClassifier(ABC):
    """用途区分判定の基底クラス

    Attributes:
        name: 方式名（集計結果にそのまま出力する）
        supported_kinds: 判定に必要な項目を持つレコード種別
    """

    name: str = ""
    supported_kinds: FrozenSet[RecordKind] = frozenset()

    def supports(self, kind: RecordKind) -> bool:
        return kind in self.supported_kinds

    @abstractmethod
    def classify(self, record: Any) -> UsageCategory:
        """レコード 1 件の用途区分を返す"""
        pass


class KanaTableClassifier(UsageClassifier):
    """分類文字の対応表による判定（既定の方式）。駐車イベントのみ"""

    name = KANA_TABLE_STRATEGY
    supported_kinds = frozenset({RecordKind.PARKING})

    def classify(self, record: Any) -> UsageCategory:
        return classify_kana(getattr(record, "kana_classifier", None))


class StayDurationClassifier(UsageClassifier):
    """滞在時間と地域による推定。駐車場フローのみ

    滞在が commercial_min_stay 分を超えれば事業用、rental_region からの
    rental_max_stay 分未満の滞在はレンタカー、それ以外は自家用。
    滞在時間が無いレコードは自家用とする。
    """

    name = STAY_DURATION_STRATEGY
    supported_kinds = frozenset({RecordKind.PARKING_FLOW})

    def __init__(
        self,
        rental_region: str = "Kobe",
        commercial_min_stay: int = 180,
        rental_max_stay: int = 120,
    ):
        self.rental_region = rental_region
        self.commercial_min_stay = commercial_min_stay
        self.rental_max_stay = rental_max_stay

    def classify(self, record: Any) -> UsageCategory:
        stay = to_int(getattr(record, "stay_duration", None))
        if stay is None:
            return UsageCategory.PRIVATE
        if stay > self.commercial_min_stay:
            return UsageCategory.COMMERCIAL
        region = to_text(getattr(record, "region", None))
        if region == self.rental_region and stay < self.rental_max_stay:
            return UsageCategory.RENTAL
        return UsageCategory.PRIVATE


def _stay_duration_from(settings: UsageClassificationSettings) -> StayDurationClassifier:
    return StayDurationClassifier(
        rental_region=settings.rental_region,
        commercial_min_stay=settings.commercial_min_stay_minutes,
        rental_max_stay=settings.rental_max_stay_minutes,
    )


def build_usage_classifier(settings: Optional[UsageClassificationSettings] = None) -> UsageClassifier:
    """設定で選ばれた方式の判定器を生成する。"""
    settings = settings or UsageClassificationSettings()
    if settings.strategy == STAY_DURATION_STRATEGY:
        return _stay_duration_from(settings)
    return KanaTableClassifier()


def build_usage_classifiers(
    settings: Optional[UsageClassificationSettings] = None,
) -> Dict[RecordKind, UsageClassifier]:
    """用途区分を持つ種別ごとに判定器を割り当てる。

    設定の方式が判定できる種別にはそれを使い、判定できない種別には
    判定可能な方式を使う。
    """
    settings = settings or UsageClassificationSettings()
    preferred = build_usage_classifier(settings)
    candidates = (preferred, KanaTableClassifier(), _stay_duration_from(settings))

    classifiers: Dict[RecordKind, UsageClassifier] = {}
    for kind in USAGE_KINDS:
        classifier = next(candidate for candidate in candidates if candidate.supports(kind))
        if classifier is not preferred:
            logger.debug("%s は %s で判定できないため %s を使います", kind.value, preferred.name, classifier.name)
        classifiers[kind] = classifier
    return classifiers

"""日付選択状態から集計対象の日付範囲を決定する。"""

from typing import Optional

from ..models import DateWindow


def resolve_window(
    selected_date: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    range_mode: bool = False,
) -> DateWindow:
    """
    UI の日付選択状態を両端を含む DateWindow に変換する

    範囲モードでない場合は selected_date の 1 日だけを対象とする。
    範囲モードでは start_date > end_date でもそのまま返し、
    集計結果が空になるだけでエラーにはしない。

    Args:
        selected_date: 単日モードの日付（YYYY-MM-DD）
        start_date: 範囲モードの開始日
        end_date: 範囲モードの終了日
        range_mode: 範囲モードかどうか

    Returns:
        DateWindow: 集計対象の日付範囲

    Raises:
        ValueError: モードに必要な日付が指定されていない場合
    """
    if range_mode:
        if not start_date or not end_date:
            raise ValueError("範囲モードでは start_date と end_date の両方が必要です")
        return DateWindow(start=start_date.strip(), end=end_date.strip())

    if not selected_date:
        raise ValueError("単日モードでは selected_date が必要です")
    day = selected_date.strip()
    return DateWindow(start=day, end=day)


def window_from_query(
    date: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Optional[DateWindow]:
    """API のクエリ（date / startDate&endDate）から範囲を決定する。

    startDate と endDate がそろっていれば範囲指定を優先し、
    どちらも無ければ None（全件）を返す。
    """
    if start_date and end_date:
        return resolve_window(start_date=start_date, end_date=end_date, range_mode=True)
    if date:
        return resolve_window(selected_date=date)
    return None

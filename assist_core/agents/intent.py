"""预约类意图的直出回复。

命中关键词（预约/试听/报名/约课）时不走检索和模型，直接生成带预约编号的回复；
回复中的【...】块由前端识别为“预约成功”弹窗。
"""

from datetime import datetime
from typing import Iterable, Optional
from uuid import uuid4

from assist_core.config.settings import settings

BOOKING_NO_PREFIX = "BK"
BOOKING_NO_LENGTH = 10
TIME_FORMAT = "%Y-%m-%d %H:%M"

BOOKING_REPLY_TEMPLATE = """已为你创建预约请求，预约编号：{booking_no}

【
### 预约成功 ✅
- 预约编号：`{booking_no}`
- 创建时间：{created_at}
- 下一步：请补充你的**意向课程**、**上课方式（线上/线下）**、**可联系时间段**（可选：手机号），我会继续为你确认安排。
】
"""


def is_booking_intent(prompt: Optional[str], phrases: Optional[Iterable[str]] = None) -> bool:
    if not prompt:
        return False
    p = prompt.lower()
    return any(phrase.lower() in p for phrase in (phrases or settings.booking_phrases))


def gen_booking_no() -> str:
    """BK + 8 位大写十六进制，共 10 位。"""

    body = uuid4().hex[: BOOKING_NO_LENGTH - len(BOOKING_NO_PREFIX)]
    return (BOOKING_NO_PREFIX + body).upper()


def try_intent_shortcut(
    prompt: Optional[str],
    now: Optional[datetime] = None,
    phrases: Optional[Iterable[str]] = None,
) -> Optional[str]:
    """命中预约意图时返回完整回复文本，否则返回 None。"""

    if not is_booking_intent(prompt, phrases):
        return None
    booking_no = gen_booking_no()
    created_at = (now or datetime.now()).strftime(TIME_FORMAT)
    return BOOKING_REPLY_TEMPLATE.format(booking_no=booking_no, created_at=created_at)

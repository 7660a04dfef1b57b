"""
通知服務：組出簡訊 deep link

只負責產生 intent（sms: URI），實際發送交給作業系統／前端，
這裡不會送出任何東西。
"""
from dataclasses import dataclass
from urllib.parse import quote
import re

# encodeURIComponent 不會跳脫的字元（英數與 -_.~ 之外）
_URI_SAFE = "!*'()"


@dataclass(frozen=True)
class NotificationIntent:
    phone_number: str
    body: str
    uri: str


def clean_phone_number(phone_number: str) -> str:
    """只留下數字：010-1234-5678 -> 01012345678"""
    return re.sub(r"\D", "", phone_number or "")


def build_sms_intent(phone_number: str, body: str, ios: bool = False) -> NotificationIntent:
    """
    產生 sms: deep link

    iOS 的 body 參數前面要用 '&'，其他平台用 '?'

    範例：
        build_sms_intent("010-1234-5678", "hi").uri -> "sms:01012345678?body=hi"
    """
    digits = clean_phone_number(phone_number)
    separator = "&" if ios else "?"
    uri = f"sms:{digits}{separator}body={quote(body, safe=_URI_SAFE)}"
    return NotificationIntent(phone_number=digits, body=body, uri=uri)


def waiting_position_message(organization: str, name: str, position: int) -> str:
    """候位登記／順位通知"""
    return (
        f"[{organization}] 안녕하세요, {name}님. 대기 명단에 등록되셨습니다. "
        f"현재 대기 {position}번째입니다. 자리가 준비되면 다시 알려드리겠습니다."
    )


def call_forward_message(organization: str, name: str, recall_minutes: int = 5) -> str:
    """輪到了，請到場"""
    return (
        f"[{organization}] 안녕하세요, {name}님! 자리가 준비되었습니다. "
        f"{recall_minutes}분 내에 오지 않으면 취소하오니, 지금 바로 와주세요."
    )

from urllib.parse import unquote

from services.notification_service import (
    build_sms_intent,
    call_forward_message,
    clean_phone_number,
    waiting_position_message,
)


def test_clean_phone_number_keeps_digits():
    assert clean_phone_number("010-1234-5678") == "01012345678"
    assert clean_phone_number("+82 (10) 1234 5678") == "821012345678"
    assert clean_phone_number(None) == ""


def test_sms_uri_separator_depends_on_platform():
    assert build_sms_intent("010-1234-5678", "hi").uri == "sms:01012345678?body=hi"
    assert build_sms_intent("010-1234-5678", "hi", ios=True).uri == "sms:01012345678&body=hi"


def test_body_is_percent_encoded_like_encode_uri_component():
    intent = build_sms_intent("010", "a b&c=d/é!*'()")

    encoded = intent.uri.split("body=", 1)[1]
    assert encoded == "a%20b%26c%3Dd%2F%C3%A9!*'()"
    assert unquote(encoded) == intent.body


def test_waiting_position_message():
    body = waiting_position_message("체험관", "Lee", 3)

    assert body.startswith("[체험관] 안녕하세요, Lee님.")
    assert "현재 대기 3번째입니다." in body


def test_call_forward_message_mentions_recall_window():
    body = call_forward_message("체험관", "Lee")

    assert "자리가 준비되었습니다" in body
    assert "5분 내에" in body
    assert "10분 내에" in call_forward_message("체험관", "Lee", recall_minutes=10)

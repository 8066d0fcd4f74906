from shopbot.logger import get_logger


def test_get_logger_names():
    assert get_logger().name == "shopbot"
    assert get_logger(None).name == "shopbot"
    assert get_logger("intent").name == "shopbot.intent"
    assert get_logger("intent").parent is get_logger()

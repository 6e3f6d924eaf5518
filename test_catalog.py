import pytest

import catalog


@pytest.mark.parametrize("section, question_id, expected", [
    ("facilities", 1, "A1"),
    ("participation", "9", "B9"),
    ("accomplishment", 3, "C3"),
    ("library", 1, None),
    (None, 1, None),
    ("facilities", 0, None),
    ("facilities", "2.5", None),
    ("facilities", True, None),
    ("facilities", 24, "A24"),
    ("facilities", 25, None),
    ("participation", 10, None),
    ("accomplishment", 999999, None),
])
def test_question_code(section, question_id, expected):
    assert catalog.question_code(section, question_id) == expected


@pytest.mark.parametrize("rating, expected", [
    (4, "very_good_4"),
    (3, "good_3"),
    ("2", "average_2"),
    (1, "below_average_1"),
    (0, None),
    (5, None),
    (None, None),
    ("good", None),
    (3.9, None),
    (4.0, None),
    ("4.0", None),
    (" 4 ", "very_good_4"),
])
def test_rating_column(rating, expected):
    assert catalog.rating_column(rating) == expected


@pytest.mark.parametrize("value, expected", [
    ("CT", "CT"),
    (" ct ", "CT"),
    ("Computer Engineering", "CT"),
    ("computer   technology", "CT"),
    ("Mechanical Engineering (R & AC)", "RAC"),
    ("COMMUNICATION & COMPUTER NETWORKING", "CCN"),
    ("Robotics", None),
    ("", None),
    (None, None),
])
def test_normalize_department(value, expected):
    assert catalog.normalize_department(value) == expected


def test_every_department_has_a_table():
    assert len(catalog.DEPARTMENTS) == 12
    assert catalog.feedback_table("MES") == "mes_feedback"
    with pytest.raises(KeyError):
        catalog.feedback_table("mes")


def test_all_question_codes_in_survey_order():
    codes = catalog.all_question_codes()
    assert len(codes) == 24 + 9 + 9
    assert codes[0] == "A1"
    assert codes[24] == "B1"
    assert codes[-1] == "C9"
    assert len(set(codes)) == len(codes)


def test_questions_for_fills_department_pso():
    sections = catalog.questions_for("CT")
    pso1, pso2 = catalog.DEPARTMENT_PSO["CT"]
    assert sections["accomplishment"][7]["text"].endswith(pso1)
    assert sections["accomplishment"][8]["text"].endswith(pso2)
    assert sections["facilities"][0] == {
        "id": 1, "code": "A1", "section": "facilities", "text": "Infrastructure Facility",
    }

from decimal import Decimal
import unittest

from schemas import ParkingRule, TimeWindow
from sign_parser import confirm_time_limit, extract


TWO_HOUR_SIGN = "2 HOUR PARKING\n8AM - 6PM\nMON-FRI"
NO_PARKING_SIGN = "NO PARKING\n7AM-9AM\n4PM-6PM\nMONDAY THRU FRIDAY"
PERMIT_SIGN = "PERMIT PARKING ONLY\nZONE 5\n8AM-6PM\nEXCEPT SUNDAYS"
MON_FRI = frozenset({0, 1, 2, 3, 4})


class ExtractScenarioTests(unittest.TestCase):
    def test_two_hour_time_limit(self) -> None:
        rules = extract(TWO_HOUR_SIGN)
        self.assertEqual(len(rules), 1)
        rule = rules[0]
        self.assertEqual(rule.kind.type, "time_limit")
        self.assertEqual(rule.kind.duration_minutes, 120)
        self.assertEqual((rule.window.start, rule.window.end), (480, 1080))
        self.assertEqual(rule.window.days, MON_FRI)
        self.assertGreaterEqual(rule.confidence, 0.85)
        self.assertLess(rule.confidence, 1.0)
        self.assertEqual(rule.raw_text, TWO_HOUR_SIGN)

    def test_no_parking_with_two_windows(self) -> None:
        rules = extract(NO_PARKING_SIGN)
        self.assertEqual([r.kind.type for r in rules], ["no_parking", "no_parking"])
        self.assertEqual(
            [(r.window.start, r.window.end) for r in rules],
            [(420, 540), (960, 1080)],
        )
        self.assertTrue(all(r.window.days == MON_FRI for r in rules))
        self.assertEqual(rules[0].confidence, 0.95)

    def test_permit_only_except_sundays(self) -> None:
        rules = extract(PERMIT_SIGN)
        self.assertEqual(len(rules), 1)
        rule = rules[0]
        self.assertEqual(rule.kind.type, "permit_required")
        self.assertEqual(rule.kind.permit_type, "ZONE 5")
        self.assertEqual(rule.window.days, frozenset({0, 1, 2, 3, 4, 5}))

    def test_gibberish_falls_back_to_unknown(self) -> None:
        rules = extract("XYZ QWERTY 123")
        self.assertEqual(len(rules), 1)
        self.assertEqual(rules[0].kind.type, "unknown")
        self.assertEqual(rules[0].confidence, 0.5)
        self.assertEqual(rules[0].raw_text, "XYZ QWERTY 123")
        self.assertIsNone(rules[0].window)

    def test_never_returns_empty(self) -> None:
        for text in ("", "   \n  ", "8AM-6PM", "MON-FRI", "ZONE 5-7", TWO_HOUR_SIGN):
            with self.subTest(text=text):
                self.assertGreaterEqual(len(extract(text)), 1)


class ExtractMatcherTests(unittest.TestCase):
    def test_matchers_fire_together_on_one_line(self) -> None:
        rules = extract("NO PARKING 7AM-9AM STREET CLEANING")
        self.assertEqual([r.kind.type for r in rules], ["no_parking", "street_cleaning"])
        self.assertTrue(all((r.window.start, r.window.end) == (420, 540) for r in rules))

    def test_separate_clauses_keep_their_own_times(self) -> None:
        rules = extract("2 HOUR PARKING 8AM-6PM MON-FRI\nNO PARKING TUE 7AM-9AM")
        self.assertEqual([r.kind.type for r in rules], ["time_limit", "no_parking"])
        self.assertEqual(rules[0].window.days, MON_FRI)
        self.assertEqual(rules[1].window.days, frozenset({1}))
        self.assertEqual((rules[1].window.start, rules[1].window.end), (420, 540))

    def test_clause_without_times_inherits_single_sign_window(self) -> None:
        rules = extract("30 MINUTE PARKING\n8AM - 6PM\nLOADING ZONE")
        self.assertEqual([r.kind.type for r in rules], ["time_limit", "loading_zone"])
        self.assertEqual(rules[0].kind.duration_minutes, 30)
        self.assertEqual(rules[1].window, rules[0].window)

    def test_metered_with_time_limit_every_day(self) -> None:
        rules = extract("METER PARKING\n2 HOUR LIMIT\n9AM - 9PM\nINCLUDING SUNDAYS")
        self.assertEqual([r.kind.type for r in rules], ["time_limit", "metered"])
        self.assertEqual(len(rules[1].window.days), 7)
        self.assertEqual((rules[1].window.start, rules[1].window.end), (540, 1260))

    def test_bare_duration_has_lower_confidence(self) -> None:
        rules = extract("15 MIN")
        self.assertEqual(rules[0].kind.duration_minutes, 15)
        self.assertEqual(rules[0].confidence, 0.75)

    def test_no_parking_24_hours_is_not_a_time_limit(self) -> None:
        rules = extract("NO PARKING 24 HOURS")
        self.assertEqual([r.kind.type for r in rules], ["no_parking"])
        self.assertIsNone(rules[0].window)

    def test_24_hours_on_its_own_line_is_not_a_time_limit(self) -> None:
        rules = extract("NO PARKING\n24 HOURS")
        self.assertEqual([r.kind.type for r in rules], ["no_parking"])

    def test_except_vehicle_class_keeps_posted_days(self) -> None:
        rules = extract("NO PARKING EXCEPT AUTHORIZED VEHICLES\n7AM-7PM\nMON-FRI")
        self.assertEqual(len(rules), 1)
        self.assertEqual(rules[0].kind.type, "no_parking")
        self.assertEqual(rules[0].window, TimeWindow(start=420, end=1140, days=frozenset(range(5))))

    def test_days_without_times_give_all_day_window(self) -> None:
        rules = extract("STREET CLEANING\nTUESDAY")
        self.assertEqual(rules[0].window.start, rules[0].window.end)
        self.assertEqual(rules[0].window.days, frozenset({1}))

    def test_free_parking(self) -> None:
        rules = extract("FREE PARKING\nSAT-SUN")
        self.assertEqual(rules[0].kind.type, "free")
        self.assertEqual(rules[0].kind.severity, "warning")

    def test_tow_away_escalates_restrictions(self) -> None:
        rules = extract("NO PARKING\n7AM-9AM\nTOW-AWAY ZONE")
        self.assertEqual(len(rules), 1)
        self.assertEqual(rules[0].kind.severity, "tow_away")

    def test_lone_tow_away_becomes_no_parking(self) -> None:
        rules = extract("TOW AWAY ZONE")
        self.assertEqual(rules[0].kind.type, "no_parking")
        self.assertEqual(rules[0].kind.severity, "tow_away")
        self.assertEqual(rules[0].confidence, 0.8)

    def test_posted_fine_is_attached(self) -> None:
        rules = extract("NO PARKING\n$65 FINE")
        self.assertEqual(rules[0].kind.fine_amount, Decimal("65"))

    def test_meter_display_paid_until(self) -> None:
        rules = extract("PAID UNTIL 3:45 PM")
        self.assertEqual(len(rules), 1)
        self.assertEqual(rules[0].kind.type, "metered")
        self.assertEqual(rules[0].kind.paid_until, 15 * 60 + 45)
        self.assertEqual(rules[0].confidence, 0.85)

    def test_ocr_confidence_scales_scores(self) -> None:
        rules = extract(TWO_HOUR_SIGN, ocr_confidence=0.5)
        self.assertAlmostEqual(rules[0].confidence, 0.45)

    def test_lowercase_input_is_normalized(self) -> None:
        rules = extract("no parking\n7am-9am\nmon-fri")
        self.assertEqual(rules[0].kind.type, "no_parking")
        self.assertEqual(rules[0].window.days, MON_FRI)


class ParkingRuleSerializationTests(unittest.TestCase):
    def test_json_round_trip(self) -> None:
        for text in (TWO_HOUR_SIGN, PERMIT_SIGN, "NO PARKING\n$65 FINE", "PAID UNTIL 3:45 PM", "XYZ"):
            for rule in extract(text):
                with self.subTest(text=text, kind=rule.kind.type):
                    restored = ParkingRule.model_validate_json(rule.model_dump_json())
                    self.assertEqual(restored, rule)

    def test_unconfirmed_rule_cannot_claim_full_confidence(self) -> None:
        with self.assertRaises(ValueError):
            ParkingRule(kind={"type": "free"}, confidence=1.0, raw_text="FREE PARKING")


class ConfirmTimeLimitTests(unittest.TestCase):
    def test_confirmation_replaces_first_time_limit(self) -> None:
        rules = extract("METER PARKING\n2 HOUR LIMIT\n9AM - 9PM")
        confirmed = confirm_time_limit(rules, 90)

        self.assertEqual(confirmed[0].kind.duration_minutes, 90)
        self.assertEqual(confirmed[0].confidence, 1.0)
        self.assertTrue(confirmed[0].user_confirmed)
        self.assertEqual(confirmed[0].window, rules[0].window)
        self.assertEqual(confirmed[1], rules[1])
        # Inputs are left untouched.
        self.assertEqual(rules[0].kind.duration_minutes, 120)
        self.assertFalse(rules[0].user_confirmed)

    def test_confirmation_without_time_limit_is_a_no_op(self) -> None:
        rules = extract(NO_PARKING_SIGN)
        self.assertEqual(confirm_time_limit(rules, 60), rules)


if __name__ == "__main__":
    unittest.main()

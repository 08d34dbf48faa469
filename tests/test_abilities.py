"""
Gated Ability Tests

Each ability is driven one tick at a time with either simulated key edges
or a pressure value pushed through the canonical signal.
"""

import unittest

from breathgate.abilities import (
    Jump,
    PushBox,
    Velocity,
    BridgeBuilder,
    BlowUpBalloons,
    InflatingBalloon,
    BlowMover,
)
from breathgate.config import DEFAULT_KEYS
from breathgate.gating.mode import ControlMode
from breathgate.gating.threshold import ThresholdEvaluator
from breathgate.gating.zones import (
    Marker,
    MarkerRole,
    NearestPairZoneIndex,
    AttachedEndZoneIndex,
    SegmentIndex,
)
from breathgate.input.keyboard_input import KeyBindings, KeyEdgeSource
from breathgate.pressure.pressure_signal import PressureSignal, PressureSample


class AbilityTestCase(unittest.TestCase):

    def setUp(self):
        self.signal = PressureSignal()
        self.evaluator = ThresholdEvaluator(self.signal)
        self.keys = KeyEdgeSource(KeyBindings(DEFAULT_KEYS))

    def blow(self, kpa):
        self.signal.set_value(PressureSample(kpa))
        self.evaluator.tick()

    def attached_zone(self, group, start_x, end_x):
        return AttachedEndZoneIndex([
            Marker(start_x, MarkerRole.START, group, name=f"{group}-start"),
            Marker(end_x, MarkerRole.END, group, parent=f"{group}-start"),
        ], group)

    def gap_zone(self, group, start_x, end_x):
        return NearestPairZoneIndex([
            Marker(start_x, MarkerRole.START, group),
            Marker(end_x, MarkerRole.END, group),
        ], group)


class TestJump(AbilityTestCase):

    def setUp(self):
        super().setUp()
        self.jump = Jump(self.evaluator, self.keys, self.attached_zone("jump", 0, 10))

    def test_keyboard_jump_in_zone(self):
        self.keys.press("jump")
        first = self.jump.update(5)
        self.keys.end_tick()
        second = self.jump.update(5)

        self.assertEqual(first.vertical_speed, 4.0)
        self.assertTrue(first.started)
        self.assertTrue(second.jumping)
        self.assertFalse(second.started)

        self.keys.release("jump")
        self.assertFalse(self.jump.update(5).jumping)

    def test_press_outside_zone_does_not_carry_in(self):
        self.keys.press("jump")
        self.assertFalse(self.jump.update(-3).jumping)
        self.keys.end_tick()

        self.assertFalse(self.jump.update(3).jumping)

    def test_breath_selects_strength(self):
        self.jump.set_control_mode(ControlMode.BREATH)

        self.blow(2.3)
        decision = self.jump.update(5)
        self.assertEqual((decision.level, decision.vertical_speed), ("medium", 4.0))

        self.blow(5.0)
        self.assertEqual(self.jump.update(5).level, "high")

        self.blow(0.5)
        self.assertFalse(self.jump.update(5).jumping)

    def test_breath_outside_zone(self):
        self.jump.set_control_mode(ControlMode.BREATH)
        self.blow(5.0)
        decision = self.jump.update(12)
        self.assertFalse(decision.in_zone)
        self.assertEqual(decision.vertical_speed, 0.0)

    def test_mode_switch_drops_held_jump(self):
        self.keys.press("jump")
        self.jump.update(5)
        self.jump.set_control_mode(ControlMode.BREATH)
        self.jump.set_control_mode(ControlMode.KEYBOARD)
        self.keys.end_tick()

        self.assertFalse(self.jump.update(5).jumping)


class TestPushBox(AbilityTestCase):

    def setUp(self):
        super().setUp()
        self.push = PushBox(self.evaluator, self.keys, self.gap_zone("push", 0, 10),
                            max_box_speed_x=2.0)
        self.push.set_control_mode(ControlMode.BREATH)

    def test_push_in_zone_clamps_speed(self):
        self.blow(1.5)
        decision = self.push.update(4, touching_box=True)
        self.assertTrue(decision.can_push)
        self.assertEqual(self.push.box_velocity(decision, Velocity(6.0, -1.0)), Velocity(2.0, -1.0))

    def test_box_frozen_outside_zone(self):
        self.blow(1.5)
        decision = self.push.update(12, touching_box=True)
        self.assertFalse(decision.can_push)
        self.assertEqual(self.push.box_velocity(decision, Velocity(3.0, -9.8)), Velocity(0.0, -9.8))

    def test_needs_contact_and_pressure(self):
        self.blow(1.5)
        self.assertFalse(self.push.update(4, touching_box=False).can_push)
        self.blow(0.2)
        self.assertFalse(self.push.update(4, touching_box=True).can_push)

    def test_keyboard_hold(self):
        self.push.set_control_mode(ControlMode.KEYBOARD)
        self.keys.press("push")
        self.keys.end_tick()
        self.assertTrue(self.push.update(4).can_push)


class TestBridgeBuilder(AbilityTestCase):

    def setUp(self):
        super().setUp()
        dark = SegmentIndex([
            Marker(1.5, MarkerRole.START, "dark"),
            Marker(2.5, MarkerRole.END, "dark"),
        ], "dark")
        self.bridge = BridgeBuilder(self.evaluator, self.keys, self.gap_zone("bridge", 0, 4),
                                    dark_segments=dark, build_speed=2.0, piece_width=0.5)
        self.bridge.set_control_mode(ControlMode.BREATH)

    def test_builds_until_far_edge(self):
        self.blow(1.5)
        first = self.bridge.update(1, dt=1.0)
        self.assertTrue(first.building)
        self.assertEqual([p.x for p in first.new_pieces], [1.0, 1.5, 2.0, 2.5])

        self.blow(1.6)
        second = self.bridge.update(1, dt=1.0)
        self.assertFalse(second.building)
        self.assertEqual(len(self.bridge.pieces), 6)
        self.assertEqual(self.bridge.length, 3.0)

    def test_dark_pieces(self):
        self.blow(1.5)
        pieces = self.bridge.update(1, dt=1.0).new_pieces
        self.assertEqual([p.dark for p in pieces], [False, True, True, False])

    def test_release_stops_building(self):
        self.blow(1.5)
        self.bridge.update(1, dt=0.5)
        self.blow(0.1)
        update = self.bridge.update(1, dt=0.5)
        self.assertFalse(update.building)
        self.assertEqual(update.new_pieces, ())

    def test_no_build_outside_zone(self):
        self.blow(1.5)
        update = self.bridge.update(6, dt=1.0)
        self.assertFalse(update.in_zone)
        self.assertFalse(update.building)

    def test_rejects_non_positive_piece_width(self):
        for width in (0.0, -0.5):
            with self.assertRaises(ValueError):
                BridgeBuilder(self.evaluator, self.keys, self.gap_zone("bridge", 0, 4), piece_width=width)

    def test_new_build_clears_old_pieces(self):
        self.blow(1.5)
        self.bridge.update(1, dt=0.5)
        self.blow(0.0)
        self.bridge.update(1, dt=0.1)
        self.blow(1.5)
        update = self.bridge.update(2, dt=0.5)
        self.assertTrue(update.cleared)
        self.assertEqual(update.new_pieces[0].x, 2.0)


class TestBlowUpBalloons(AbilityTestCase):

    def setUp(self):
        super().setUp()
        self.now = 0.0
        self.balloons = BlowUpBalloons(self.evaluator, self.keys, self.attached_zone("blow", 0, 20),
                                       balloon_positions=[3, 8, 30], max_blow_distance_x=10.0,
                                       sound_duration_limit=1.0, clock=lambda: self.now)
        self.balloons.set_control_mode(ControlMode.BREATH)

    def test_launches_balloons_ahead(self):
        self.blow(1.5)
        update = self.balloons.update(1)
        self.assertEqual(update.launched, (0, 1))
        self.assertTrue(update.play_sound)

    def test_sound_stops_after_limit(self):
        self.blow(1.5)
        self.balloons.update(1)
        self.now = 1.5
        self.assertTrue(self.balloons.update(1).stop_sound)

    def test_leaving_zone_resets(self):
        self.blow(1.5)
        self.balloons.update(1)
        update = self.balloons.update(25)
        self.assertTrue(update.reset)
        self.assertEqual(self.balloons.flying, [False, False, False])

    def test_held_breath_does_not_retrigger(self):
        self.blow(1.5)
        self.balloons.update(1)
        self.blow(1.8)
        self.assertFalse(self.balloons.update(1).triggered)


class TestInflatingBalloon(AbilityTestCase):

    def setUp(self):
        super().setUp()
        self.balloon = InflatingBalloon(self.evaluator, self.keys, inflate_speed=0.5, max_scale=2.0)

    def test_inflates_while_key_held(self):
        self.keys.press("inflate")
        self.assertEqual(self.balloon.update(1.0).scale, 1.5)
        self.assertEqual(self.balloon.update(1.0).scale, 2.0)
        self.assertFalse(self.balloon.update(1.0).inflating)

    def test_mode_switch_resets_scale(self):
        self.keys.press("inflate")
        self.balloon.update(1.0)
        self.balloon.set_control_mode(ControlMode.BREATH)
        self.assertEqual(self.balloon.scale, 1.0)

    def test_breath_gate(self):
        self.balloon.set_control_mode(ControlMode.BREATH)
        self.blow(0.5)
        self.assertFalse(self.balloon.update(1.0).inflating)
        self.blow(1.2)
        self.assertTrue(self.balloon.update(1.0).inflating)


class TestBlowMover(AbilityTestCase):

    def test_moves_along_normalized_direction(self):
        mover = BlowMover(self.evaluator, self.keys, direction=(3.0, 4.0), speed=5.0)
        mover.set_control_mode(ControlMode.BREATH)
        self.blow(2.0)

        step = mover.update(0.5)
        self.assertAlmostEqual(step.dx, 1.5)
        self.assertAlmostEqual(step.dy, 2.0)

    def test_stop_blow_disables(self):
        mover = BlowMover(self.evaluator, self.keys)
        self.keys.press("move")
        mover.stop_blow()
        self.assertFalse(mover.update(1.0).moving)
        mover.start_blow()
        self.assertTrue(mover.update(1.0).moving)


if __name__ == '__main__':
    unittest.main()

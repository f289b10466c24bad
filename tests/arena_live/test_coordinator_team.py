"""
Tests for team membership and missions in SessionCoordinator.
"""

import pytest

from arena_live.models import MissionConfig
from arena_live.protocol import SessionEventType, WireEvent
from fakes import LOCAL_USER


@pytest.mark.unit
class TestTeamCommands:

    def test_join_team(self, connected, transport):
        connected.join_team("t1", LOCAL_USER)

        assert transport.sent_events(WireEvent.JOIN_TEAM) == [{"teamId": "t1", "userId": LOCAL_USER}]
        # Membership only changes when the server confirms
        assert connected.team is None

    def test_leave_team_uses_connected_user(self, connected, transport):
        connected.leave_team("t1")

        assert transport.sent_events(WireEvent.LEAVE_TEAM) == [{"teamId": "t1", "userId": LOCAL_USER}]

    def test_start_mission(self, connected, transport):
        connected.start_team_mission("t1", MissionConfig(name="Relay", duration=300))
        connected.start_team_mission("t1", {"name": "Sprint"})

        assert transport.sent_events(WireEvent.START_MISSION) == [
            {"teamId": "t1", "missionConfig": {"name": "Relay", "duration": 300}},
            {"teamId": "t1", "missionConfig": {"name": "Sprint"}},
        ]

    def test_start_mission_with_invalid_config_is_dropped(self, connected, transport):
        connected.start_team_mission("t1", {"duration": "long"})

        assert transport.sent_events(WireEvent.START_MISSION) == []

    def test_mission_progress(self, connected, transport):
        connected.update_team_mission_progress("t1", "m1", 12.5)

        assert transport.sent_events(WireEvent.MISSION_PROGRESS) == [
            {"teamId": "t1", "missionId": "m1", "progress": 12.5}
        ]


@pytest.mark.unit
class TestTeamState:

    def test_team_joined(self, connected, transport, sample_team, recorder):
        records = recorder(SessionEventType.TEAM_UPDATED)

        transport.deliver(WireEvent.TEAM_JOINED, sample_team)

        team = connected.team
        assert team.team_id == "t1"
        assert [m.user_id for m in team.members] == [LOCAL_USER, "u-mate"]
        assert team.active_mission is None
        assert len(records) == 1

    def test_malformed_team_is_ignored(self, connected, transport):
        transport.deliver(WireEvent.TEAM_JOINED, {"members": []})

        assert connected.team is None

    def test_first_update_starts_mission(self, connected, transport, sample_team, recorder):
        records = recorder(SessionEventType.TEAM_MISSION_PROGRESS)
        transport.deliver(WireEvent.TEAM_JOINED, sample_team)

        transport.deliver(
            WireEvent.TEAM_MISSION_UPDATED,
            {"teamId": "t1", "missionId": "m1", "name": "Relay", "overallProgress": 10},
        )

        mission = connected.team.active_mission
        assert mission.id == "m1"
        assert mission.name == "Relay"
        assert mission.overall_progress == 10
        assert len(records) == 1

    def test_updates_are_merged(self, connected, transport, sample_team):
        transport.deliver(WireEvent.TEAM_JOINED, sample_team)
        transport.deliver(
            WireEvent.TEAM_MISSION_UPDATED,
            {
                "missionId": "m1",
                "name": "Relay",
                "overallProgress": 10,
                "contributions": [{"userId": LOCAL_USER, "points": 5}, {"userId": "u-mate", "points": 3}],
            },
        )

        transport.deliver(
            WireEvent.TEAM_MISSION_UPDATED,
            {"missionId": "m1", "overallProgress": 25, "contributions": [{"userId": "u-mate", "points": 9}]},
        )

        mission = connected.team.active_mission
        assert mission.name == "Relay"
        assert mission.overall_progress == 25
        assert [(c.user_id, c.points) for c in mission.contributions] == [(LOCAL_USER, 5), ("u-mate", 9)]

    def test_mission_from_team_joined_is_merged(self, connected, transport):
        transport.deliver(
            WireEvent.TEAM_JOINED,
            {"teamId": "t1", "mission": {"id": "m1", "name": "Relay", "overallProgress": 10}},
        )
        assert connected.team.active_mission.name == "Relay"

        transport.deliver(WireEvent.TEAM_MISSION_UPDATED, {"teamId": "t1", "missionId": "m1", "overallProgress": 20})

        team = connected.team
        assert team.active_mission.id == "m1"
        assert team.active_mission.name == "Relay"
        assert team.active_mission.overall_progress == 20
        # Held once, under the server's field name
        assert team.model_extra == {}
        assert team.to_wire()["mission"]["overallProgress"] == 20

    def test_new_mission_id_replaces_mission(self, connected, transport, sample_team):
        transport.deliver(WireEvent.TEAM_JOINED, sample_team)
        transport.deliver(WireEvent.TEAM_MISSION_UPDATED, {"missionId": "m1", "name": "Relay", "overallProgress": 80})

        transport.deliver(WireEvent.TEAM_MISSION_UPDATED, {"missionId": "m2", "overallProgress": 5})

        mission = connected.team.active_mission
        assert mission.id == "m2"
        assert mission.name is None
        assert mission.overall_progress == 5

    def test_overall_progress_is_clamped(self, connected, transport, sample_team):
        transport.deliver(WireEvent.TEAM_JOINED, sample_team)

        transport.deliver(WireEvent.TEAM_MISSION_UPDATED, {"missionId": "m1", "overallProgress": -4})

        assert connected.team.active_mission.overall_progress == 0

    def test_update_without_team_is_ignored(self, connected, transport, recorder):
        records = recorder(SessionEventType.TEAM_UPDATED, SessionEventType.TEAM_MISSION_PROGRESS)

        transport.deliver(WireEvent.TEAM_MISSION_UPDATED, {"missionId": "m1", "overallProgress": 10})

        assert connected.team is None
        assert records == []

    def test_update_for_other_team_is_ignored(self, connected, transport, sample_team):
        transport.deliver(WireEvent.TEAM_JOINED, sample_team)

        transport.deliver(WireEvent.TEAM_MISSION_UPDATED, {"teamId": "t2", "missionId": "m1", "overallProgress": 10})
        transport.deliver(WireEvent.TEAM_MISSION_UPDATED, ["not", "a", "dict"])

        assert connected.team.active_mission is None

    def test_team_is_a_snapshot(self, connected, transport, sample_team):
        transport.deliver(WireEvent.TEAM_JOINED, sample_team)

        connected.team.members.clear()

        assert len(connected.team.members) == 2

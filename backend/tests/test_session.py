"""
Tests for the QuizSession state machine: lobby joins, question flow,
early close, settlement, final standings, removal and teardown.
"""
import asyncio

import pytest

from livequiz.errors import InvalidTransition, SessionAlreadyStarted, SessionFull
from livequiz.question_bank import QuestionBank

from conftest import make_question


async def join(session, name, connection_id=None):
    return await session.add_participant(name, connection_id or f"conn-{name}")


async def settle_and_advance(session):
    await session.settle()
    await session.advance()


# ---------------------------------------------------------------------------
# Lobby
# ---------------------------------------------------------------------------

class TestLobby:

    @pytest.mark.asyncio
    async def test_add_participant_starts_with_zero_score(self, make_session):
        session = make_session()
        participant_id = await join(session, "Alice")
        player = session.players[participant_id]
        assert player.score == 0
        assert player.has_answered is False
        assert player.current_answer is None

    @pytest.mark.asyncio
    async def test_add_participant_broadcasts_roster_and_notifies_admin(self, make_session, gateway):
        session = make_session()
        participant_id = await join(session, "Alice", "conn-a")

        joined = gateway.sent_to("conn-a", "joinedSession")
        assert joined[-1].participantId == participant_id
        assert joined[-1].sessionId == "ROOM01"

        admin_notice = gateway.sent_to("admin-conn", "playerJoined")[-1]
        assert [entry.name for entry in admin_notice.roster] == ["Alice"]

        update = gateway.broadcasts("playerListUpdate")[-1]
        assert [entry.id for entry in update.roster] == [participant_id]
        assert "conn-a" in gateway.members["ROOM01"]

    @pytest.mark.asyncio
    async def test_participant_ids_are_unique(self, make_session):
        session = make_session(id_factory=iter(["dup", "dup", "dup", "other"]).__next__)
        first = await join(session, "Alice")
        second = await join(session, "Bob")
        assert first == "dup"
        assert second == "other"

    @pytest.mark.asyncio
    async def test_blank_names_get_default(self, make_session):
        session = make_session()
        participant_id = await join(session, "   ", "conn-x")
        assert session.players[participant_id].name == "Player"

    @pytest.mark.asyncio
    async def test_join_after_start_is_rejected_and_roster_unchanged(self, make_session):
        session = make_session()
        await join(session, "Alice")
        await session.start()
        roster_before = session.roster()

        with pytest.raises(SessionAlreadyStarted):
            await join(session, "Bob")

        assert session.active is True
        assert session.roster() == roster_before

    @pytest.mark.asyncio
    async def test_join_rejected_when_full(self, make_session):
        session = make_session(max_players=1)
        await join(session, "Alice")
        with pytest.raises(SessionFull):
            await join(session, "Bob")


# ---------------------------------------------------------------------------
# Question flow
# ---------------------------------------------------------------------------

class TestQuestionFlow:

    @pytest.mark.asyncio
    async def test_start_broadcasts_first_question(self, make_session, gateway):
        session = make_session()
        await join(session, "Alice")
        await session.start()

        assert session.phase == "question"
        assert session.current_question_index == 0
        event = gateway.broadcasts("newQuestion")[-1]
        assert event.questionNumber == 1
        assert event.totalQuestions == 5
        assert event.question.question == "What is the capital of France?"
        assert "correctIndex" not in event.to_message()["question"]
        assert session.timer.key == "question"

    @pytest.mark.asyncio
    async def test_second_start_does_not_reset_progress(self, make_session):
        session = make_session()
        await join(session, "Alice")
        await session.start()
        await settle_and_advance(session)
        assert session.current_question_index == 1

        with pytest.raises(InvalidTransition):
            await session.start()
        assert session.current_question_index == 1

    @pytest.mark.asyncio
    async def test_entering_question_clears_previous_answers(self, make_session, clock):
        session = make_session()
        alice = await join(session, "Alice")
        await join(session, "Bob")
        await session.start()
        await session.submit_answer(alice, 2)
        await settle_and_advance(session)

        player = session.players[alice]
        assert player.has_answered is False
        assert player.current_answer is None
        assert session.question_started_at == clock.now

    @pytest.mark.asyncio
    async def test_duplicate_answer_is_ignored(self, make_session):
        session = make_session()
        alice = await join(session, "Alice")
        await join(session, "Bob")
        await session.start()

        assert await session.submit_answer(alice, 0) is True
        assert await session.submit_answer(alice, 2) is False
        assert session.players[alice].current_answer == 0

    @pytest.mark.asyncio
    async def test_unknown_participant_answer_is_ignored(self, make_session):
        session = make_session()
        await join(session, "Alice")
        await session.start()
        assert await session.submit_answer("ghost", 1) is False
        assert session.phase == "question"

    @pytest.mark.asyncio
    async def test_answer_outside_question_is_rejected(self, make_session):
        session = make_session()
        alice = await join(session, "Alice")
        with pytest.raises(InvalidTransition):
            await session.submit_answer(alice, 0)

    @pytest.mark.asyncio
    async def test_all_answered_settles_early(self, make_session, gateway):
        session = make_session()
        alice = await join(session, "Alice")
        bob = await join(session, "Bob")
        await session.start()
        question_timer_task = session.timer._task

        await session.submit_answer(alice, 2)
        assert session.phase == "question"
        await session.submit_answer(bob, 0)

        assert session.phase == "results"
        assert len(gateway.broadcasts("questionResults")) == 1
        await asyncio.sleep(0.01)
        assert question_timer_task.done()
        assert session.timer.key == "results"

    @pytest.mark.asyncio
    async def test_window_expiry_settles_unanswered_as_incorrect(self, make_session, gateway):
        session = make_session(question_time_ms=20)
        alice = await join(session, "Alice")
        await join(session, "Bob")
        await session.start()
        await session.submit_answer(alice, 2)

        await asyncio.sleep(0.2)

        results = gateway.broadcasts("questionResults")
        assert len(results) == 1
        by_name = {row.name: row for row in results[0].results}
        assert by_name["Alice"].isCorrect is True
        assert by_name["Bob"].isCorrect is False
        assert by_name["Bob"].submittedAnswer is None
        assert session.phase == "results"

    @pytest.mark.asyncio
    async def test_empty_session_waits_out_each_window(self, make_session, gateway):
        bank = QuestionBank([make_question(1), make_question(2)])
        session = make_session(questions=bank, question_time_ms=10, results_pause_ms=10)
        await session.start()

        assert session.phase == "question"
        assert session.timer.key == "question"

        await asyncio.sleep(0.3)

        results = gateway.broadcasts("questionResults")
        assert len(results) == 2
        assert all(event.results == [] for event in results)
        assert session.phase == "ended"
        assert gateway.broadcasts("quizEnd")[0].finalStandings == []

    @pytest.mark.asyncio
    async def test_results_pause_advances_to_next_question(self, make_session, gateway):
        session = make_session(results_pause_ms=10)
        alice = await join(session, "Alice")
        await session.start()
        await session.submit_answer(alice, 2)

        await asyncio.sleep(0.2)

        assert session.current_question_index == 1
        assert session.phase == "question"
        assert [e.questionNumber for e in gateway.broadcasts("newQuestion")] == [1, 2]

    @pytest.mark.asyncio
    async def test_results_payload(self, make_session, gateway):
        session = make_session()
        alice = await join(session, "Alice")
        bob = await join(session, "Bob")
        await session.start()
        await session.submit_answer(alice, 2)
        await session.submit_answer(bob, 1)

        event = gateway.broadcasts("questionResults")[-1]
        assert event.correctAnswer == 2
        assert event.questionText == "What is the capital of France?"
        rows = {row.participantId: row for row in event.results}
        assert rows[alice].isCorrect and rows[alice].bonus and rows[alice].score == 15
        assert rows[bob].submittedAnswer == 1
        assert not rows[bob].isCorrect and rows[bob].score == 0

    @pytest.mark.asyncio
    async def test_settle_twice_scores_once(self, make_session):
        session = make_session()
        alice = await join(session, "Alice")
        await join(session, "Bob")
        await session.start()
        await session.submit_answer(alice, 2)

        await session.settle()
        await session.settle()
        assert session.players[alice].score == 15

    @pytest.mark.asyncio
    async def test_advance_outside_results_is_noop(self, make_session):
        session = make_session()
        await join(session, "Alice")
        await session.advance()
        assert session.current_question_index == -1
        await session.start()
        await session.advance()
        assert session.current_question_index == 0


# ---------------------------------------------------------------------------
# Scoring scenarios
# ---------------------------------------------------------------------------

class TestScoringScenarios:

    @pytest.mark.asyncio
    async def test_solo_correct_answer_on_third_question(self, make_session, clock):
        session = make_session()
        player = await join(session, "Solo")
        await session.start()
        await settle_and_advance(session)
        await settle_and_advance(session)
        assert session.current_question_index == 2
        assert session.current_question.correct_index == 1

        prior = session.players[player].score
        clock.advance(2000)
        await session.submit_answer(player, 1)

        assert session.players[player].score == prior + 15

    @pytest.mark.asyncio
    async def test_faster_correct_answer_gets_bonus(self, make_session, clock, gateway):
        session = make_session()
        p1 = await join(session, "P1")
        p2 = await join(session, "P2")
        await session.start()

        clock.advance(900)
        await session.submit_answer(p2, 2)
        clock.advance(600)
        await session.submit_answer(p1, 2)

        assert session.players[p1].score == 10
        assert session.players[p2].score == 15
        rows = {row.participantId: row for row in gateway.broadcasts("questionResults")[-1].results}
        assert rows[p2].bonus is True
        assert rows[p1].bonus is False

    @pytest.mark.asyncio
    async def test_scores_never_decrease(self, make_session):
        session = make_session()
        ids = [await join(session, name) for name in ("A", "B", "C")]
        await session.start()

        previous = {pid: 0 for pid in ids}
        answers = [0, 1, 2, 3, 99]
        while session.phase == "question":
            for offset, pid in enumerate(ids):
                await session.submit_answer(pid, answers[(session.current_question_index + offset) % 5])
            for pid in ids:
                score = session.players[pid].score
                assert score >= previous[pid] >= 0
                previous[pid] = score
            await session.advance()

        assert session.phase == "ended"

    @pytest.mark.asyncio
    async def test_invalid_option_index_is_scored_incorrect(self, make_session):
        session = make_session()
        alice = await join(session, "Alice")
        await session.start()
        await session.submit_answer(alice, 42)
        assert session.phase == "results"
        assert session.players[alice].score == 0


# ---------------------------------------------------------------------------
# End of quiz
# ---------------------------------------------------------------------------

class TestEnd:

    @pytest.mark.asyncio
    async def test_final_standings_sorted_with_stable_ties(self, make_session, gateway):
        bank = QuestionBank([make_question(1, correct_index=0), make_question(2, correct_index=1)])
        session = make_session(questions=bank)
        a = await join(session, "A")
        b = await join(session, "B")
        c = await join(session, "C")
        await session.start()

        # Question 1: only C is right.
        await session.submit_answer(a, 3)
        await session.submit_answer(b, 3)
        await session.submit_answer(c, 0)
        await session.advance()
        # Question 2: nobody is right.
        for pid in (a, b, c):
            await session.submit_answer(pid, 0)
        await session.advance()

        assert session.phase == "ended"
        assert session.active is False
        assert session.current_question_index == len(bank)
        standings = gateway.broadcasts("quizEnd")[-1].finalStandings
        assert [(entry.name, entry.score) for entry in standings] == [("C", 15), ("A", 0), ("B", 0)]
        assert session.timer.pending is False

    @pytest.mark.asyncio
    async def test_no_transitions_after_end(self, make_session):
        session = make_session(questions=QuestionBank([make_question(1)]))
        alice = await join(session, "Alice")
        await session.start()
        await settle_and_advance(session)
        assert session.phase == "ended"

        with pytest.raises(InvalidTransition):
            await session.submit_answer(alice, 0)
        with pytest.raises(InvalidTransition):
            await session.start()
        await session.settle()
        await session.advance()
        assert session.phase == "ended"

    @pytest.mark.asyncio
    async def test_question_index_is_monotonic_and_bounded(self, make_session):
        session = make_session()
        await join(session, "Alice")
        seen = [session.current_question_index]
        await session.start()
        while session.phase != "ended":
            seen.append(session.current_question_index)
            await settle_and_advance(session)
        seen.append(session.current_question_index)

        assert seen == sorted(seen)
        assert max(seen) <= len(session.questions)


# ---------------------------------------------------------------------------
# Removal and teardown
# ---------------------------------------------------------------------------

class TestRemoval:

    @pytest.mark.asyncio
    async def test_remove_broadcasts_roster(self, make_session, gateway):
        session = make_session()
        alice = await join(session, "Alice", "conn-a")
        bob = await join(session, "Bob", "conn-b")

        assert await session.remove_participant(alice) is True
        roster = gateway.broadcasts("playerListUpdate")[-1].roster
        assert [entry.id for entry in roster] == [bob]
        assert "conn-a" not in gateway.members["ROOM01"]

    @pytest.mark.asyncio
    async def test_remove_unknown_is_noop(self, make_session):
        session = make_session()
        assert await session.remove_participant("ghost") is False

    @pytest.mark.asyncio
    async def test_removing_last_unanswered_player_settles(self, make_session, gateway):
        session = make_session()
        alice = await join(session, "Alice")
        bob = await join(session, "Bob")
        await session.start()
        await session.submit_answer(alice, 2)

        await session.remove_participant(bob)

        assert session.phase == "results"
        rows = gateway.broadcasts("questionResults")[-1].results
        assert [row.participantId for row in rows] == [alice]

    @pytest.mark.asyncio
    async def test_everyone_leaving_mid_question_settles_empty(self, make_session, gateway):
        session = make_session()
        alice = await join(session, "Alice")
        await session.start()

        await session.remove_participant(alice)

        assert session.phase == "results"
        event = gateway.broadcasts("questionResults")[-1]
        assert event.results == []
        assert session.timer.key == "results"


class TestTeardown:

    @pytest.mark.asyncio
    async def test_teardown_mid_question(self, make_session, gateway):
        removed = []
        session = make_session(on_teardown=removed.append)
        await join(session, "Alice", "conn-a")
        await session.start()
        assert session.timer.pending

        await session.teardown("Admin left the session")

        assert session.phase == "torn-down"
        assert session.active is False
        assert session.timer.pending is False
        assert gateway.broadcasts("sessionEnded")[-1].message == "Admin left the session"
        assert gateway.closed_sessions == ["ROOM01"]
        assert removed == ["ROOM01"]

    @pytest.mark.asyncio
    async def test_teardown_is_idempotent(self, make_session, gateway):
        removed = []
        session = make_session(on_teardown=removed.append)
        await session.teardown("first")
        await session.teardown("second")
        assert len(gateway.broadcasts("sessionEnded")) == 1
        assert removed == ["ROOM01"]

    @pytest.mark.asyncio
    async def test_pending_timer_does_not_fire_after_teardown(self, make_session, gateway):
        session = make_session(question_time_ms=20)
        await join(session, "Alice")
        await session.start()
        await session.teardown("bye")

        await asyncio.sleep(0.1)
        assert gateway.broadcasts("questionResults") == []

import asyncio

import pytest

from trading_dashboard.exceptions import EmptySelectionError, SlotBusyError, TransportError
from trading_dashboard.jobs.models import JobSlot, JobStatus, PollState
from trading_dashboard.jobs.recovery import SessionRecovery
from trading_dashboard.jobs.selection import SelectionManager
from trading_dashboard.jobs.submitter import JobSubmitter

from .fakes import status_payload


@pytest.fixture
def selections():
    return {slot: SelectionManager() for slot in JobSlot}


@pytest.fixture
def submitter(fake_api, make_engine, cache_store, markers, selections):
    engines = {slot: make_engine(slot) for slot in JobSlot}
    return JobSubmitter(fake_api, engines, cache_store, markers, selections, indicators=['RSI', 'MACD'])


class TestSubmit:
    """Test JobSubmitter.submit."""

    def test_successful_submission(self, submitter, fake_api, markers, selections):
        selections[JobSlot.SINGLE].toggle('TCS.NS')

        handle = asyncio.run(submitter.submit(JobSlot.SINGLE, ['TCS.NS']))

        assert handle.job_id == 'job-1'
        assert handle.job.status is JobStatus.PENDING
        assert handle.job.progress == 0
        assert fake_api.calls == [('analyze_stocks', ['TCS.NS'], ['RSI', 'MACD'])]
        assert markers.get('single') == 'job-1'
        assert submitter.engines[JobSlot.SINGLE].state is PollState.POLLING
        assert len(selections[JobSlot.SINGLE]) == 0

    def test_cache_invalidated_before_request(self, submitter, fake_api, cache_store):
        cache_store.write('watchlist', [{'symbol': 'TCS.NS'}])
        cache_store.mark_valid('watchlist')
        seen = []
        original = fake_api.analyze_stocks

        async def spy(tickers, indicators=None):
            seen.append(cache_store.is_valid('watchlist'))
            return await original(tickers, indicators)

        fake_api.analyze_stocks = spy

        asyncio.run(submitter.submit(JobSlot.WATCHLIST, ['TCS.NS', 'INFY.NS']))

        assert seen == [False]
        assert cache_store.read('watchlist') == [{'symbol': 'TCS.NS'}]

    def test_explicit_indicators_win(self, submitter, fake_api):
        asyncio.run(submitter.submit(JobSlot.SINGLE, ['TCS.NS'], indicators=['ATR']))

        assert fake_api.calls[0][2] == ['ATR']

    def test_duplicate_identifiers_sent_once(self, submitter, fake_api):
        handle = asyncio.run(submitter.submit(JobSlot.WATCHLIST, ['A', 'B', 'A', '']))

        assert fake_api.calls[0][1] == ['A', 'B']
        assert handle.job.total == 2

    def test_all_stocks_with_empty_selection_means_everything(self, submitter, fake_api):
        handle = asyncio.run(submitter.submit(JobSlot.ALL_STOCKS, []))

        assert fake_api.calls == [('analyze_all_stocks', [])]
        assert handle.slot is JobSlot.ALL_STOCKS


class TestRejections:
    """Test submissions that must not reach the server."""

    def test_busy_slot_rejected_without_second_call(self, submitter, fake_api):
        async def scenario():
            await submitter.submit(JobSlot.SINGLE, ['TCS.NS'])
            with pytest.raises(SlotBusyError) as exc_info:
                await submitter.submit(JobSlot.SINGLE, ['INFY.NS'])
            return exc_info.value

        error = asyncio.run(scenario())

        assert error.job_id == 'job-1'
        assert fake_api.count('analyze_stocks') == 1
        assert submitter.engines[JobSlot.SINGLE].job.job_id == 'job-1'

    def test_busy_while_submission_in_flight(self, submitter, fake_api):
        async def scenario():
            fake_api.submit_gate = asyncio.Event()
            first = asyncio.create_task(submitter.submit(JobSlot.WATCHLIST, ['A']))
            await asyncio.sleep(0)
            with pytest.raises(SlotBusyError):
                await submitter.submit(JobSlot.WATCHLIST, ['B'])
            fake_api.submit_gate.set()
            return await first

        handle = asyncio.run(scenario())

        assert handle.job_id == 'job-1'
        assert fake_api.count('analyze_stocks') == 1

    def test_slots_are_independent(self, submitter, fake_api):
        async def scenario():
            await submitter.submit(JobSlot.SINGLE, ['TCS.NS'])
            return await submitter.submit(JobSlot.WATCHLIST, ['INFY.NS'])

        handle = asyncio.run(scenario())

        assert handle.job_id == 'job-2'
        assert submitter.is_busy(JobSlot.SINGLE)
        assert submitter.is_busy(JobSlot.WATCHLIST)
        assert not submitter.is_busy(JobSlot.ALL_STOCKS)

    @pytest.mark.parametrize("slot", [JobSlot.SINGLE, JobSlot.WATCHLIST])
    def test_empty_selection_rejected(self, submitter, fake_api, cache_store, slot):
        cache_store.mark_valid('watchlist')

        with pytest.raises(EmptySelectionError):
            asyncio.run(submitter.submit(slot, []))

        assert fake_api.calls == []
        assert cache_store.is_valid('watchlist')

    def test_transport_failure_surfaces_and_frees_slot(self, submitter, fake_api, markers, selections):
        fake_api.submit_error = TransportError('POST', '/analyze', "connection refused")
        selections[JobSlot.WATCHLIST].toggle('A')

        with pytest.raises(TransportError):
            asyncio.run(submitter.submit(JobSlot.WATCHLIST, ['A']))

        assert fake_api.count('analyze_stocks') == 1
        assert not submitter.is_busy(JobSlot.WATCHLIST)
        assert markers.get('watchlist') is None
        assert 'A' in selections[JobSlot.WATCHLIST]

    def test_response_without_job_id(self, submitter, fake_api):
        async def no_job_id(tickers, indicators=None):
            return {'message': 'queued'}

        fake_api.analyze_stocks = no_job_id

        with pytest.raises(TransportError):
            asyncio.run(submitter.submit(JobSlot.SINGLE, ['TCS.NS']))

        assert not submitter.is_busy(JobSlot.SINGLE)

    def test_slot_recovered_while_submission_in_flight(self, submitter, fake_api, markers):
        markers.set('watchlist', 'job-0')
        fake_api.statuses['job-0'] = [status_payload('running', total=3, completed=1)]
        recovery = SessionRecovery(submitter.engines, markers)

        async def scenario():
            fake_api.submit_gate = asyncio.Event()
            pending = asyncio.create_task(submitter.submit(JobSlot.WATCHLIST, ['A']))
            await asyncio.sleep(0)
            recovered = await recovery.recover(JobSlot.WATCHLIST)
            fake_api.submit_gate.set()
            with pytest.raises(SlotBusyError):
                await pending
            return recovered

        recovered = asyncio.run(scenario())

        assert recovered.job_id == 'job-0'
        assert submitter.engines[JobSlot.WATCHLIST].job.job_id == 'job-0'
        assert markers.get('watchlist') == 'job-0'
        assert submitter.is_busy(JobSlot.WATCHLIST)

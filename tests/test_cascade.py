"""
Tests for the workflow cascade engine
"""
import itertools
import pytest
from datetime import datetime

from services.cascade import (
    AddJobPhoto,
    CollectionChanged,
    CreateAppointment,
    CreateJob,
    CreateQuote,
    DeleteAppointment,
    DeleteJob,
    DeleteQuote,
    EditAppointment,
    EditJob,
    EditQuote,
    NotifyCrew,
    RecordNotFoundError,
    RemoveJobPhoto,
    Resynchronize,
    SetInvoiceStatus,
    SetQuoteStatus,
    WorkflowState,
    apply_cascade,
)
from services.records import Appointment, Customer, Invoice, Job, Quote

NOW = datetime(2024, 6, 15, 9, 30, 0)


def id_sequence():
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}-{next(counter)}"


def run(state, command):
    return apply_cascade(state, command, now=NOW, new_id=id_sequence())


def changed(effects):
    return [e.collection for e in effects if isinstance(e, CollectionChanged)]


def notices(effects):
    return [e for e in effects if isinstance(e, NotifyCrew)]


@pytest.fixture
def customer():
    return Customer(id='C-1', name='Jane Smith', email='jane@example.com', address='12 Harbor Rd')


@pytest.fixture
def quote():
    return Quote(id='Q-1', customer_name='Jane Smith', services=['House Wash', 'Deck'],
                 amount=450, status='pending', date='2024-06-20T12:00:00')


@pytest.fixture
def job():
    return Job(id='J-1', quote_id='Q-1', customer_name='Jane Smith', service='House Wash, Deck',
               address='12 Harbor Rd', scheduled_date='2024-06-20T12:00:00', status='pending')


@pytest.mark.unit
class TestCreateQuote:
    """Creating a quote also creates its pending job"""

    def test_create_quote_creates_pending_job(self, customer):
        state = WorkflowState(customers=(customer,))
        new_state, effects = run(state, CreateQuote(
            quote_id='Q-1', customer_name='Jane Smith', services=['House Wash', 'Deck'], amount=450
        ))

        assert len(new_state.quotes) == 1
        assert new_state.quotes[0].status == 'pending'
        job = new_state.jobs[0]
        assert job.quote_id == 'Q-1'
        assert job.status == 'pending'
        assert job.service == 'House Wash, Deck'
        assert job.address == '12 Harbor Rd'
        assert job.assigned_crew == 'Unassigned'
        assert job.scheduled_date == '2024-06-15T12:00:00'
        assert changed(effects) == ['quotes', 'jobs']

    def test_create_quote_without_customer_leaves_address_blank(self):
        new_state, _ = run(WorkflowState(), CreateQuote(
            quote_id='Q-1', customer_name='Nobody', services=['Roof']
        ))
        assert new_state.jobs[0].address == ''

    def test_input_state_is_not_mutated(self, customer):
        state = WorkflowState(customers=(customer,))
        run(state, CreateQuote(quote_id='Q-1', customer_name='Jane Smith', services=['Roof']))
        assert state.quotes == ()
        assert state.jobs == ()

    def test_replaying_create_is_idempotent(self, customer):
        command = CreateQuote(quote_id='Q-1', customer_name='Jane Smith', services=['Roof'])
        once, _ = run(WorkflowState(customers=(customer,)), command)
        twice, effects = run(once, command)

        assert len(twice.quotes) == 1
        assert len(twice.jobs) == 1
        assert changed(effects) == []


@pytest.mark.unit
class TestQuoteStatus:
    """Quote status changes cascade to job and invoices"""

    def test_approve_schedules_job_and_creates_invoice(self, quote, job):
        state = WorkflowState(quotes=(quote,), jobs=(job,))
        new_state, effects = run(state, SetQuoteStatus(quote_id='Q-1', status='approved'))

        assert new_state.jobs[0].status == 'scheduled'
        assert len(new_state.invoices) == 1
        invoice = new_state.invoices[0]
        assert invoice.quote_id == 'Q-1'
        assert invoice.status == 'pending'
        assert invoice.amount == 450
        assert invoice.service == 'House Wash, Deck'
        assert invoice.due_date == '2024-07-15T09:30:00'
        assert invoice.quickbooks_synced is False
        assert set(changed(effects)) == {'quotes', 'jobs', 'invoices'}

    def test_approve_twice_creates_one_invoice(self, quote, job):
        state = WorkflowState(quotes=(quote,), jobs=(job,))
        once, _ = run(state, SetQuoteStatus(quote_id='Q-1', status='approved'))
        twice, effects = run(once, SetQuoteStatus(quote_id='Q-1', status='approved'))

        assert len(twice.invoices) == 1
        assert changed(effects) == []

    def test_approve_without_job_creates_scheduled_job(self, quote):
        new_state, _ = run(WorkflowState(quotes=(quote,)), SetQuoteStatus(quote_id='Q-1', status='approved'))
        assert len(new_state.jobs) == 1
        assert new_state.jobs[0].status == 'scheduled'
        assert new_state.jobs[0].scheduled_date == '2024-06-20T12:00:00'

    def test_invoiced_without_job_uses_quote_date(self, quote):
        new_state, _ = run(WorkflowState(quotes=(quote,)), SetQuoteStatus(quote_id='Q-1', status='invoiced'))
        assert new_state.jobs[0].status == 'completed'
        assert new_state.jobs[0].scheduled_date == '2024-06-20T12:00:00'

    def test_reject_cancels_job_and_voids_invoices(self, quote, job):
        invoice = Invoice(id='INV-1', quote_id='Q-1', customer_name='Jane Smith',
                          service='House Wash, Deck', amount=450, status='pending',
                          due_date='2024-07-15T09:30:00')
        state = WorkflowState(quotes=(quote,), jobs=(job,), invoices=(invoice,))
        new_state, _ = run(state, SetQuoteStatus(quote_id='Q-1', status='rejected'))

        assert new_state.jobs[0].status == 'cancelled'
        assert new_state.invoices[0].status == 'void'

    def test_invoiced_completes_job_and_pays_invoice(self, quote, job):
        invoice = Invoice(id='INV-1', quote_id='Q-1', customer_name='Jane Smith',
                          service='House Wash, Deck', amount=450, status='pending',
                          due_date='2024-07-15T09:30:00')
        state = WorkflowState(quotes=(quote,), jobs=(job,), invoices=(invoice,))
        new_state, _ = run(state, SetQuoteStatus(quote_id='Q-1', status='invoiced'))

        assert new_state.jobs[0].status == 'completed'
        assert new_state.jobs[0].completed_date == NOW.isoformat()
        assert new_state.invoices[0].status == 'paid'
        assert new_state.invoices[0].paid_date == NOW.isoformat()

    def test_invoiced_creates_paid_invoice_when_missing(self, quote, job):
        state = WorkflowState(quotes=(quote,), jobs=(job,))
        new_state, _ = run(state, SetQuoteStatus(quote_id='Q-1', status='invoiced'))

        assert len(new_state.invoices) == 1
        assert new_state.invoices[0].status == 'paid'

    def test_invoiced_does_not_recreate_tombstoned_job(self, quote):
        state = WorkflowState(quotes=(quote,), deleted_job_references=('Q-1',))
        new_state, _ = run(state, SetQuoteStatus(quote_id='Q-1', status='invoiced'))
        assert new_state.jobs == ()

    def test_unknown_quote_raises(self):
        with pytest.raises(RecordNotFoundError):
            run(WorkflowState(), SetQuoteStatus(quote_id='missing', status='approved'))


@pytest.mark.unit
class TestEditQuote:
    """Quote edits propagate to the job and linked invoices"""

    def test_edit_updates_job_and_invoice(self, quote, job):
        invoice = Invoice(id='INV-1', customer_name='Jane Smith', service='House Wash, Deck',
                          amount=450, status='pending', due_date='2024-07-15')
        state = WorkflowState(quotes=(quote,), jobs=(job,), invoices=(invoice,))
        new_state, _ = run(state, EditQuote(quote_id='Q-1', services=['Roof'], amount=600,
                                            customer_name='Jane Doe'))

        assert new_state.jobs[0].service == 'Roof'
        assert new_state.jobs[0].customer_name == 'Jane Doe'
        # Name-linked invoice was resolved before the rename
        assert new_state.invoices[0].service == 'Roof'
        assert new_state.invoices[0].amount == 600
        assert new_state.invoices[0].customer_name == 'Jane Doe'

    def test_edit_does_not_recreate_tombstoned_job(self, quote):
        state = WorkflowState(quotes=(quote,), deleted_job_references=('Q-1',))
        new_state, _ = run(state, EditQuote(quote_id='Q-1', notes='gate code 1234'))
        assert new_state.jobs == ()
        assert new_state.quotes[0].notes == 'gate code 1234'

    def test_edit_without_job_uses_quote_date(self, quote):
        new_state, _ = run(WorkflowState(quotes=(quote,)), EditQuote(quote_id='Q-1', notes='side gate'))
        assert new_state.jobs[0].status == 'pending'
        assert new_state.jobs[0].scheduled_date == '2024-06-20T12:00:00'


@pytest.mark.unit
class TestInvoiceStatus:
    """Paying an invoice marks the quote invoiced"""

    def test_paid_invoice_marks_quote_invoiced(self, quote, job):
        approved = quote.model_copy(update={'status': 'approved'})
        invoice = Invoice(id='INV-1', quote_id='Q-1', customer_name='Jane Smith',
                          service='House Wash, Deck', amount=450, status='pending', due_date='2024-07-15')
        state = WorkflowState(quotes=(approved,), jobs=(job,), invoices=(invoice,))
        new_state, _ = run(state, SetInvoiceStatus(invoice_id='INV-1', status='paid'))

        assert new_state.quotes[0].status == 'invoiced'
        assert new_state.jobs[0].status == 'completed'
        assert new_state.invoices[0].status == 'paid'

    def test_paid_invoice_without_quote_id_matches_by_name_and_service(self, quote, job):
        invoice = Invoice(id='INV-1', customer_name='jane smith', service='House Wash, Deck',
                          amount=450, status='pending', due_date='2024-07-15')
        state = WorkflowState(quotes=(quote,), jobs=(job,), invoices=(invoice,))
        new_state, _ = run(state, SetInvoiceStatus(invoice_id='INV-1', status='paid'))
        assert new_state.quotes[0].status == 'invoiced'

    def test_unpaying_clears_paid_date(self):
        invoice = Invoice(id='INV-1', customer_name='Jane Smith', service='Roof', amount=100,
                          status='paid', paid_date='2024-06-01', due_date='2024-07-01')
        new_state, _ = run(WorkflowState(invoices=(invoice,)),
                           SetInvoiceStatus(invoice_id='INV-1', status='overdue'))
        assert new_state.invoices[0].paid_date is None


@pytest.mark.unit
class TestDeletes:
    """Deletes cascade and leave tombstones"""

    def test_delete_quote_removes_job_invoices_and_tombstones(self, quote, job):
        invoice = Invoice(id='INV-1', quote_id='Q-1', customer_name='Jane Smith',
                          service='House Wash, Deck', amount=450, status='pending', due_date='2024-07-15')
        state = WorkflowState(quotes=(quote,), jobs=(job,), invoices=(invoice,))
        new_state, effects = run(state, DeleteQuote(quote_id='Q-1'))

        assert new_state.quotes == ()
        assert new_state.jobs == ()
        assert new_state.invoices == ()
        assert new_state.deleted_job_references == ('Q-1',)
        assert 'deleted-job-references' in changed(effects)

    def test_delete_job_tombstones_its_quote(self, quote, job):
        state = WorkflowState(quotes=(quote,), jobs=(job,))
        new_state, _ = run(state, DeleteJob(job_id='J-1'))

        assert new_state.jobs == ()
        assert new_state.quotes[0].id == 'Q-1'
        assert new_state.deleted_job_references == ('Q-1',)

    def test_resync_skips_tombstoned_quotes(self, quote, job):
        state = WorkflowState(quotes=(quote,), jobs=(job,))
        after_delete, _ = run(state, DeleteJob(job_id='J-1'))
        resynced, effects = run(after_delete, Resynchronize())

        assert resynced.jobs == ()
        assert changed(effects) == []

    def test_resync_recreates_missing_job(self, quote):
        approved = quote.model_copy(update={'status': 'approved'})
        new_state, _ = run(WorkflowState(quotes=(approved,)), Resynchronize())

        assert len(new_state.jobs) == 1
        assert new_state.jobs[0].status == 'scheduled'

    def test_resync_keeps_old_quote_on_its_own_date(self, quote):
        old = quote.model_copy(update={'status': 'approved', 'date': '2023-03-15T12:00:00'})
        new_state, _ = run(WorkflowState(quotes=(old,)), Resynchronize())

        assert new_state.jobs[0].scheduled_date == '2023-03-15T12:00:00'


@pytest.mark.unit
class TestJobNotifications:
    """Crew assignment and schedule changes produce notifications"""

    def test_create_assigned_job_notifies_crew(self):
        _, effects = run(WorkflowState(), CreateJob(
            job_id='J-9', customer_name='Jane Smith', scheduled_date='2024-06-20',
            scheduled_time='09:00', assigned_crew='Kevin Rodriguez'
        ))
        sent = notices(effects)
        assert len(sent) == 1
        assert sent[0].crew_member_name == 'Kevin Rodriguez'
        assert sent[0].type == 'new_assignment'
        assert sent[0].details['date'] == '2024-06-20'

    def test_unassigned_job_sends_nothing(self):
        _, effects = run(WorkflowState(), CreateJob(
            job_id='J-9', customer_name='Jane Smith', scheduled_date='2024-06-20'
        ))
        assert notices(effects) == []

    def test_reassignment_notifies_both_crew_members(self, job):
        assigned = job.model_copy(update={'assigned_crew': 'Kevin Rodriguez'})
        _, effects = run(WorkflowState(jobs=(assigned,)),
                         EditJob(job_id='J-1', assigned_crew='Ryan Mitchell'))

        sent = {(n.crew_member_name, n.type) for n in notices(effects)}
        assert sent == {('Kevin Rodriguez', 'assignment_removed'), ('Ryan Mitchell', 'new_assignment')}

    def test_date_change_notifies_assignee(self, job):
        assigned = job.model_copy(update={'assigned_crew': 'Kevin Rodriguez'})
        _, effects = run(WorkflowState(jobs=(assigned,)),
                         EditJob(job_id='J-1', scheduled_date='2024-06-22T12:00:00'))

        sent = notices(effects)
        assert [n.type for n in sent] == ['date_changed']
        assert sent[0].details['oldDate'] == '2024-06-20'
        assert sent[0].details['newDate'] == '2024-06-22'

    def test_date_and_time_change_is_one_schedule_change(self, job):
        assigned = job.model_copy(update={'assigned_crew': 'Kevin Rodriguez', 'scheduled_time': '09:00'})
        _, effects = run(WorkflowState(jobs=(assigned,)),
                         EditJob(job_id='J-1', scheduled_date='2024-06-22', scheduled_time='13:00'))
        assert [n.type for n in notices(effects)] == ['schedule_changed']

    def test_same_day_time_of_day_change_is_not_a_date_change(self, job):
        assigned = job.model_copy(update={'assigned_crew': 'Kevin Rodriguez'})
        _, effects = run(WorkflowState(jobs=(assigned,)),
                         EditJob(job_id='J-1', scheduled_date='2024-06-20T08:00:00'))
        assert notices(effects) == []

    def test_edit_with_no_changes_writes_nothing(self, job):
        _, effects = run(WorkflowState(jobs=(job,)), EditJob(job_id='J-1', notes=job.notes))
        assert effects == []


@pytest.mark.unit
class TestJobPhotos:

    def test_add_and_remove_photo(self, job):
        state = WorkflowState(jobs=(job,))
        with_photo, _ = run(state, AddJobPhoto(job_id='J-1', photo_id='P-1',
                                               url='/api/jobs/photos/J-1/a.jpg', type='before'))
        assert [p.id for p in with_photo.jobs[0].photos] == ['P-1']

        without, _ = run(with_photo, RemoveJobPhoto(job_id='J-1', photo_id='P-1'))
        assert without.jobs[0].photos == []


@pytest.mark.unit
class TestAppointments:
    """Appointment edits and deletes"""

    @pytest.fixture
    def appointment(self):
        return Appointment(id='A-1', customer_name='Jane Smith', services=['Roof'],
                           date='2024-06-20', time='09:00', address='12 Harbor Rd',
                           assigned_employee='Kevin Rodriguez')

    def test_create_appointment_notifies_assignee(self):
        _, effects = run(WorkflowState(), CreateAppointment(
            appointment_id='A-1', customer_name='Jane Smith', date='2024-06-20',
            time='09:00', assigned_employee='Kevin Rodriguez'
        ))
        assert [n.type for n in notices(effects)] == ['new_assignment']

    def test_time_change_notifies_assignee(self, appointment):
        _, effects = run(WorkflowState(appointments=(appointment,)),
                         EditAppointment(appointment_id='A-1', time='14:00'))
        sent = notices(effects)
        assert [n.type for n in sent] == ['time_changed']
        assert sent[0].details['newTime'] == '14:00'

    def test_delete_cancels_jobs_clears_quotes_and_resets_invoices(self, appointment, job, quote):
        paid = Invoice(id='INV-1', customer_name='Jane Smith', service='Roof', amount=100,
                       status='paid', paid_date='2024-06-01', due_date='2024-07-01')
        overdue = Invoice(id='INV-2', customer_name='Jane Smith', service='Deck', amount=100,
                          status='overdue', due_date='2024-05-01')
        completed = job.model_copy(update={'id': 'J-2', 'status': 'completed'})
        booked = quote.model_copy(update={'time': '09:00', 'assigned_crew': 'Kevin Rodriguez'})

        state = WorkflowState(appointments=(appointment,), jobs=(job, completed),
                              quotes=(booked,), invoices=(paid, overdue))
        new_state, effects = run(state, DeleteAppointment(appointment_id='A-1'))

        assert new_state.appointments == ()
        statuses = {j.id: j.status for j in new_state.jobs}
        assert statuses == {'J-1': 'cancelled', 'J-2': 'completed'}
        assert new_state.quotes[0].time is None
        assert new_state.quotes[0].assigned_crew == 'Unassigned'
        invoices = {i.id: i.status for i in new_state.invoices}
        assert invoices == {'INV-1': 'paid', 'INV-2': 'pending'}
        assert [n.type for n in notices(effects)] == ['assignment_removed']

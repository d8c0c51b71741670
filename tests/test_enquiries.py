import pytest

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.schemas.enquiry import EnquiryCreate, FeedbackCreate
from app.services import enquiries
from app.services.auth import ANONYMOUS

QUESTION = EnquiryCreate(name="Vic Visitor", phone="900", message="Can I view it on Saturday?")


async def test_enquiry_is_routed_to_the_verifying_agent(db_session, seed, live_property):
    enquiry_id = await enquiries.submit_enquiry(db_session, actor=ANONYMOUS, property_id=live_property, enquiry=QUESTION)

    inbox = await enquiries.list_enquiries(db_session, actor=seed["agent"])
    assert [e.id for e in inbox] == [enquiry_id]
    assert inbox[0].agent_id == seed["agent"].principal_id
    assert inbox[0].property_id == live_property
    assert await enquiries.count_enquiries(db_session, agent_id=seed["agent"].principal_id) == 1


async def test_member_enquiry_records_the_buyer(db_session, seed, live_property):
    await enquiries.submit_enquiry(db_session, actor=seed["buyer"], property_id=live_property, enquiry=QUESTION)
    inbox = await enquiries.list_enquiries(db_session, actor=seed["admin"])
    assert len(inbox) == 1


async def test_pending_listing_takes_no_enquiries(db_session, seed, pending_property):
    with pytest.raises(NotFoundError):
        await enquiries.submit_enquiry(db_session, actor=ANONYMOUS, property_id=pending_property, enquiry=QUESTION)


async def test_enquiry_needs_a_message(db_session, seed, live_property):
    with pytest.raises(ValidationError) as exc:
        await enquiries.submit_enquiry(
            db_session,
            actor=ANONYMOUS,
            property_id=live_property,
            enquiry=EnquiryCreate(name="Vic", phone="900", message="  "),
        )
    assert exc.value.details == [{"field": "message", "error": "required"}]


async def test_agents_do_not_send_enquiries(db_session, seed, live_property):
    with pytest.raises(AuthorizationError):
        await enquiries.submit_enquiry(db_session, actor=seed["agent"], property_id=live_property, enquiry=QUESTION)


async def test_members_cannot_read_the_agent_inbox(db_session, seed):
    with pytest.raises(AuthorizationError):
        await enquiries.list_enquiries(db_session, actor=seed["buyer"])


async def test_feedback_is_stored_for_approved_agent(db_session, seed):
    row = await enquiries.submit_feedback(
        db_session,
        actor=seed["buyer"],
        agent_id=seed["agent"].principal_id,
        feedback=FeedbackCreate(rating=4, comment="  Quick replies "),
    )
    assert row.rating == 4
    assert row.comment == "Quick replies"
    assert row.user_id == seed["buyer"].principal_id


@pytest.mark.parametrize("rating", [0, 6, -1])
async def test_feedback_rating_out_of_range(db_session, seed, rating):
    with pytest.raises(ValidationError):
        await enquiries.submit_feedback(
            db_session, actor=seed["buyer"], agent_id=seed["agent"].principal_id, feedback=FeedbackCreate(rating=rating)
        )


async def test_feedback_for_pending_agent_is_not_found(db_session, seed):
    with pytest.raises(NotFoundError):
        await enquiries.submit_feedback(
            db_session, actor=seed["buyer"], agent_id=seed["pending_agent_id"], feedback=FeedbackCreate(rating=3)
        )


async def test_anonymous_feedback_is_denied(db_session, seed):
    with pytest.raises(AuthorizationError):
        await enquiries.submit_feedback(
            db_session, actor=ANONYMOUS, agent_id=seed["agent"].principal_id, feedback=FeedbackCreate(rating=3)
        )

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from skillswap.models.review import ReviewCreate, ReviewRead, ReviewResponseInput
from skillswap.models.swap_request import SwapRequestCreate
from skillswap.models.user import User
from skillswap.services import reviews
from skillswap.services.swap_lifecycle import accept_swap, complete_swap, create_swap


def review_payload(overall=5, comment="great", rating=None, **extra):
    return ReviewCreate(
        rating={"overall": overall, **(rating or {})},
        comment=comment,
        would_recommend=True,
        **extra,
    )


@pytest_asyncio.fixture
async def completed_swap(async_session: AsyncSession, make_user):
    alice = await make_user("Alice", ["JS"], ["Python"])
    bob = await make_user("Bob", ["Python"], ["JS"])
    swap = await create_swap(async_session, alice, SwapRequestCreate(
        recipient_id=bob.id, skill_offered="JS", skill_wanted="Python",
        learning_mode="In-Person", duration={"estimated_hours": 4},
    ))
    await accept_swap(async_session, swap.id, bob)
    swap = await complete_swap(async_session, swap.id, bob)
    return swap, alice, bob


@pytest.mark.asyncio
async def test_review_skills_follow_the_reviewer_side(async_session: AsyncSession, completed_swap):
    swap, alice, bob = completed_swap

    from_alice = await reviews.submit_review(async_session, swap.id, alice, review_payload())
    assert (from_alice.reviewee_id, from_alice.skill_taught, from_alice.skill_learned) == (bob.id, "JS", "Python")
    assert from_alice.is_verified

    from_bob = await reviews.submit_review(async_session, swap.id, bob, review_payload(4, "patient and clear"))
    assert (from_bob.reviewee_id, from_bob.skill_taught, from_bob.skill_learned) == (alice.id, "Python", "JS")


@pytest.mark.asyncio
async def test_review_requires_completed_swap_and_party(async_session: AsyncSession, make_user):
    alice = await make_user("Alice", ["JS"], ["Python"])
    bob = await make_user("Bob", ["Python"], ["JS"])
    eve = await make_user("Eve", [], [])
    swap = await create_swap(async_session, alice, SwapRequestCreate(
        recipient_id=bob.id, skill_offered="JS", skill_wanted="Python",
        learning_mode="Online", duration={"estimated_hours": 4},
    ))
    with pytest.raises(InvalidArgument):
        await reviews.submit_review(async_session, swap.id, alice, review_payload())

    await accept_swap(async_session, swap.id, bob)
    await complete_swap(async_session, swap.id, alice)
    with pytest.raises(Forbidden):
        await reviews.submit_review(async_session, swap.id, eve, review_payload())
    with pytest.raises(NotFound):
        await reviews.submit_review(async_session, 9999, alice, review_payload())


@pytest.mark.asyncio
async def test_second_review_conflicts(async_session: AsyncSession, completed_swap):
    swap, alice, bob = completed_swap
    await reviews.submit_review(async_session, swap.id, alice, review_payload())
    with pytest.raises(Conflict):
        await reviews.submit_review(async_session, swap.id, alice, review_payload(1, "changed my mind"))

    received, total = await reviews.list_user_reviews(async_session, bob.id)
    assert total == 1
    assert received[0].rating_overall == 5


@pytest.mark.asyncio
async def test_rating_is_recomputed_from_visible_reviews(async_session: AsyncSession, completed_swap, make_user):
    swap, alice, bob = completed_swap
    review = await reviews.submit_review(async_session, swap.id, alice, review_payload(4))

    bob = await async_session.get(User, bob.id, populate_existing=True)
    assert bob.rating == 4.0
    assert bob.reviews_count == 1

    carol = await make_user("Carol", ["Go"], ["Python"])
    second = await create_swap(async_session, carol, SwapRequestCreate(
        recipient_id=bob.id, skill_offered="Go", skill_wanted="Python",
        learning_mode="Online", duration={"estimated_hours": 2},
    ))
    await accept_swap(async_session, second.id, bob)
    await complete_swap(async_session, second.id, carol)
    await reviews.submit_review(async_session, second.id, carol, review_payload(5))

    bob = await async_session.get(User, bob.id, populate_existing=True)
    assert bob.rating == 4.5
    assert bob.reviews_count == 2

    await reviews.set_review_hidden(async_session, review.id, True)
    bob = await async_session.get(User, bob.id, populate_existing=True)
    assert bob.rating == 5.0
    assert bob.reviews_count == 1

    received, total = await reviews.list_user_reviews(async_session, bob.id)
    assert total == 1


@pytest.mark.asyncio
async def test_private_review_does_not_count(async_session: AsyncSession, completed_swap):
    swap, alice, bob = completed_swap
    await reviews.submit_review(async_session, swap.id, alice, review_payload(2, is_public=False))

    bob = await async_session.get(User, bob.id, populate_existing=True)
    assert bob.rating == 0
    assert bob.reviews_count == 0


@pytest.mark.asyncio
async def test_reviewee_responds_once(async_session: AsyncSession, completed_swap):
    swap, alice, bob = completed_swap
    review = await reviews.submit_review(
        async_session, swap.id, alice,
        review_payload(rating={"communication": 4, "patience": 5}),
    )
    assert review.average_detailed_rating == 4.5

    with pytest.raises(Forbidden):
        await reviews.respond_to_review(async_session, review.id, alice, ReviewResponseInput(comment="me too"))

    review = await reviews.respond_to_review(
        async_session, review.id, bob, ReviewResponseInput(comment="  Thanks!  ")
    )
    assert review.response_comment == "Thanks!"
    assert review.responded_at is not None
    assert ReviewRead.from_review(review).response_comment == "Thanks!"

    with pytest.raises(Forbidden):
        await reviews.respond_to_review(async_session, review.id, bob, ReviewResponseInput(comment="again"))


def test_review_comment_is_validated():
    with pytest.raises(ValueError):
        ReviewCreate(rating={"overall": 5}, comment="   ", would_recommend=True)
    with pytest.raises(ValueError):
        ReviewCreate(rating={"overall": 6}, comment="fine", would_recommend=True)
    with pytest.raises(ValueError):
        ReviewCreate(rating={"overall": 3}, comment="ok", would_recommend=False, pros=["x" * 201])

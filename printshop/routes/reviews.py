from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from printshop.models import Order, OrderItem, PaymentStatus, Product, Review, ReviewHelpfulVote, User
from printshop.schemas import HelpfulVoteBody, ReviewBody, ReviewUpdateBody
from printshop.services.catalog import refresh_rating
from printshop.utils.database import get_db
from printshop.utils.errors import NotFoundError, UnauthorizedError, ValidationError
from printshop.utils.response import paginate, send_success
from printshop.utils.security import get_current_user, get_optional_user

router = APIRouter(prefix="/reviews", tags=["reviews"])

SORT_COLUMNS = {
    "created_at": Review.created_at,
    "rating": Review.rating,
    "helpful": Review.helpful_count,
}


def _check_rating(rating: Optional[int]):
    if rating is None or rating < 1 or rating > 5:
        raise ValidationError("Rating must be between 1 and 5")


def review_dict(review: Review, my_vote: Optional[bool] = None) -> dict:
    data = review.to_dict()
    data["my_vote"] = my_vote
    data["user"] = {
        "user_id": review.user.user_id,
        "name": review.user.name,
        "email": review.user.email,
    } if review.user else None
    return data


def _owned_review(db: Session, user: User, review_id: int, action: str) -> Review:
    review = db.get(Review, review_id)
    if not review:
        raise NotFoundError("Review not found")
    if review.user_id != user.user_id:
        raise UnauthorizedError(f"Not authorized to {action} this review")
    return review


@router.get("/product/{product_id}")
def get_product_reviews(product_id: int, page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                        sort_by: str = "created_at", order: str = "desc",
                        user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    if not db.get(Product, product_id):
        raise NotFoundError("Product not found")

    column = SORT_COLUMNS.get(sort_by, Review.created_at)
    direction = column.asc() if order == "asc" else column.desc()
    approved = (Review.product_id == product_id, Review.is_approved.is_(True))

    query = (
        db.query(Review)
        .options(joinedload(Review.user))
        .filter(*approved)
        .order_by(direction, Review.review_id.desc())
    )
    reviews, meta = paginate(query, page, limit)

    distribution = {rating: 0 for rating in range(1, 6)}
    for rating, count in (
        db.query(Review.rating, func.count(Review.review_id)).filter(*approved).group_by(Review.rating)
    ):
        distribution[rating] = count

    votes = {}
    if user is not None and reviews:
        votes = dict(
            db.query(ReviewHelpfulVote.review_id, ReviewHelpfulVote.is_helpful).filter(
                ReviewHelpfulVote.user_id == user.user_id,
                ReviewHelpfulVote.review_id.in_([r.review_id for r in reviews]),
            )
        )

    return send_success({
        "reviews": [review_dict(r, votes.get(r.review_id)) for r in reviews],
        "pagination": meta,
        "rating_distribution": distribution,
    })


@router.post("/product/{product_id}")
def create_review(product_id: int, body: ReviewBody, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    _check_rating(body.rating)

    if not db.get(Product, product_id):
        raise NotFoundError("Product not found")

    existing = db.query(Review).filter(Review.product_id == product_id, Review.user_id == user.user_id).first()
    if existing:
        raise ValidationError("You have already reviewed this product")

    purchased = (
        db.query(OrderItem)
        .join(Order)
        .filter(
            OrderItem.product_id == product_id,
            Order.user_id == user.user_id,
            Order.payment_status == PaymentStatus.SUCCESS,
        )
        .first()
    )

    review = Review(
        product_id=product_id,
        user_id=user.user_id,
        rating=body.rating,
        title=body.title or None,
        comment=body.comment or None,
        images=list(body.images),
        is_verified_purchase=purchased is not None,
    )
    db.add(review)
    db.flush()
    refresh_rating(db, product_id)
    db.commit()
    db.refresh(review)
    return send_success(review_dict(review), "Review created successfully", 201)


@router.put("/{review_id}")
def update_review(review_id: int, body: ReviewUpdateBody, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    review = _owned_review(db, user, review_id, "update")

    changes = body.model_dump(exclude_unset=True)
    if "rating" in changes:
        _check_rating(changes["rating"])
    for field, value in changes.items():
        setattr(review, field, value)

    db.flush()
    refresh_rating(db, review.product_id)
    db.commit()
    db.refresh(review)
    return send_success(review_dict(review), "Review updated successfully")


@router.delete("/{review_id}")
def delete_review(review_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    review = _owned_review(db, user, review_id, "delete")
    product_id = review.product_id
    db.delete(review)
    db.flush()
    refresh_rating(db, product_id)
    db.commit()
    return send_success(None, "Review deleted successfully")


# ---------------------- Helpful votes ----------------------

def _refresh_helpful_count(db: Session, review: Review) -> int:
    count = (
        db.query(func.count(ReviewHelpfulVote.vote_id))
        .filter(ReviewHelpfulVote.review_id == review.review_id, ReviewHelpfulVote.is_helpful.is_(True))
        .scalar()
    ) or 0
    review.helpful_count = count
    return count


@router.post("/{review_id}/helpful")
def vote_review_helpful(review_id: int, body: Optional[HelpfulVoteBody] = None,
                        user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    review = db.get(Review, review_id)
    if not review:
        raise NotFoundError("Review not found")

    is_helpful = body.is_helpful if body else True
    vote = (
        db.query(ReviewHelpfulVote)
        .filter(ReviewHelpfulVote.review_id == review_id, ReviewHelpfulVote.user_id == user.user_id)
        .first()
    )
    if vote:
        vote.is_helpful = is_helpful
    else:
        db.add(ReviewHelpfulVote(review_id=review_id, user_id=user.user_id, is_helpful=is_helpful))
    db.flush()

    count = _refresh_helpful_count(db, review)
    db.commit()
    return send_success({"helpful_count": count}, "Vote recorded successfully")


@router.delete("/{review_id}/helpful")
def remove_helpful_vote(review_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    review = db.get(Review, review_id)
    if not review:
        raise NotFoundError("Review not found")

    vote = (
        db.query(ReviewHelpfulVote)
        .filter(ReviewHelpfulVote.review_id == review_id, ReviewHelpfulVote.user_id == user.user_id)
        .first()
    )
    if not vote:
        raise NotFoundError("Vote not found")
    db.delete(vote)
    db.flush()

    count = _refresh_helpful_count(db, review)
    db.commit()
    return send_success({"helpful_count": count}, "Vote removed successfully")

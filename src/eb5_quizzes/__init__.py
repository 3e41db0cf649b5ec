"""EB-5 investor education quizzes."""

from triviaduel.services.auth import AuthService
from triviaduel.services.challenge import ChallengeService, challenge_service
from triviaduel.services.trivia import OpenTriviaService, trivia_service

__all__ = ["AuthService", "ChallengeService", "challenge_service", "OpenTriviaService", "trivia_service"]

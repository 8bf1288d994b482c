from __future__ import annotations

from watchfinder.models.content_contracts import MovieProvidersResponse, MovieSummary
from watchfinder.models.provider_contracts import PaidProviders, ProviderView, RegionProviders

MOCK_PROVIDER_LINK = "https://www.justwatch.com"

MOCK_SUGGESTIONS: tuple[MovieSummary, ...] = (
    MovieSummary(id=496243, title="기생충", year=2019),
    MovieSummary(id=11216, title="올드보이", year=2003),
    MovieSummary(id=372058, title="너의 이름은.", year=2016),
)


def _mock_view(key: str, name: str) -> ProviderView:
    return ProviderView(key=key, name=name, link=MOCK_PROVIDER_LINK)


def mock_movie_providers(query_or_id: str) -> MovieProvidersResponse:
    normalized = query_or_id.strip().lower()
    is_parasite = "기생충" in normalized or "parasite" in normalized

    primary = (
        [_mock_view("netflix", "Netflix"), _mock_view("tving", "TVING")] if is_parasite else []
    )
    return MovieProvidersResponse(
        query=query_or_id,
        movie=MovieSummary(
            id=496243 if is_parasite else 0,
            title="기생충" if is_parasite else "샘플 영화",
            year=2019 if is_parasite else 2024,
        ),
        kr=RegionProviders(
            country="KR",
            exists=True,
            primary_providers=primary,
            paid_providers=PaidProviders(
                rent=[_mock_view("appletvplus", "Apple TV+")],
                buy=[_mock_view("appletvplus", "Apple TV+")],
            ),
            show_paid=not is_parasite,
        ),
        fallback=RegionProviders(
            country="US",
            exists=True,
            primary_providers=[_mock_view("netflix", "Netflix")],
            paid_providers=PaidProviders(rent=[], buy=[]),
            show_paid=False,
        ),
        used_mock=True,
    )


def mock_suggestions(query: str, *, limit: int = 5) -> list[MovieSummary]:
    return [movie for movie in MOCK_SUGGESTIONS if query in movie.title][:limit]

"""Unit tests for FilmAffinity detail-page parsing."""

from __future__ import annotations

from fa_viewer.scraper.film_parser import MAX_SYNOPSIS_LENGTH, parse_film_page

FILM_PAGE = """
<html><body>
<h1 id="main-title"><span itemprop="name">El club de la lucha</span></h1>
<div id="movie-main-image-container">
  <img src="//pics.filmaffinity.com/fight_club-large.jpg">
</div>
<div id="movie-rat-avg">8,6</div>
<dl class="movie-info">
  <dt class="main-title"><span>Fight Club</span></dt><dd>Título original</dd>
  <dt>Año</dt><dd itemprop="datePublished">1999</dd>
  <dt>Duración</dt><dd itemprop="duration">139 min.</dd>
  <dt>Sinopsis</dt><dd itemprop="description">Un empleado de oficina insomne...</dd>
</dl>
</body></html>
"""

SERIES_PAGE = """
<html><body>
<h1 id="main-title"><span itemprop="name">Twin Peaks</span></h1>
<dl class="movie-info">
  <dt>Año</dt><dd itemprop="datePublished">1990</dd>
  <dt>Género</dt><dd>Serie de TV. Intriga</dd>
</dl>
</body></html>
"""


class TestParseFilmPage:
    def test_fields_are_extracted(self) -> None:
        detail = parse_film_page(FILM_PAGE, "123456")

        assert detail.id == "123456"
        assert detail.year == 1999
        assert detail.duration == 139
        assert detail.rating == 8.6
        assert detail.poster == "https://pics.filmaffinity.com/fight_club-large.jpg"
        assert detail.synopsis == "Un empleado de oficina insomne..."
        assert detail.type == "movie"
        assert detail.source_url == "https://www.filmaffinity.com/es/film123456.html"

    def test_original_title_is_preferred(self) -> None:
        assert parse_film_page(FILM_PAGE, "123456").title == "Fight Club"

    def test_localised_title_without_original(self) -> None:
        assert parse_film_page(SERIES_PAGE, "654321").title == "Twin Peaks"

    def test_series_detected(self) -> None:
        assert parse_film_page(SERIES_PAGE, "654321").type == "series"

    def test_synopsis_is_truncated(self) -> None:
        page = f'<html><body><h1>X</h1><p itemprop="description">{"a" * 1000}</p></body></html>'
        detail = parse_film_page(page, "123456")
        assert detail.synopsis is not None
        assert len(detail.synopsis) == MAX_SYNOPSIS_LENGTH

    def test_garbage_input_never_raises(self) -> None:
        detail = parse_film_page(None, "123456")
        assert detail.id == "123456"
        assert detail.title is None
        assert detail.source_url.endswith("film123456.html")

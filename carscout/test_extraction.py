"""
Tests for the extraction strategy chain, run against static HTML snapshots.
"""
from carscout.extraction import HEURISTIC_STRATEGY, extract, is_car_listing
from carscout.platforms import BIKROY

BASE = "https://bikroy.com"


def bikroy_card(i, title="Toyota Corolla X 2004", price="Tk 1,190,000"):
    return f"""
    <li data-testid="ad-card">
      <img src="https://i.bikroy-st.com/car-{i}.jpg"/>
      <div data-testid="ad-title"><a href="/en/ad/car-{i}">{title}</a></div>
      <div data-testid="ad-price">{price}</div>
      <div data-testid="ad-location">Mirpur, Dhaka</div>
    </li>"""


def page(*cards):
    return f"<html><body><ul>{''.join(cards)}</ul></body></html>"


def test_primary_strategy_direct_hits():
    listings = extract(page(bikroy_card(1)), BIKROY.strategies, platform="Bikroy", base_url=BASE, page_number=2)

    assert len(listings) == 1
    car = listings[0]
    assert car.title == "Toyota Corolla X 2004"
    assert car.price_text == "Tk 1,190,000"
    assert car.link == "https://bikroy.com/en/ad/car-1"
    assert car.image_url == "https://i.bikroy-st.com/car-1.jpg"
    assert car.specs.location == "Mirpur, Dhaka"
    assert car.specs.year == 2004
    assert car.extraction.strategy_name == "Modern Bikroy"
    assert car.extraction.confidence == "high"
    assert car.extraction.page_number == 2
    assert car.synthetic is False


def test_second_strategy_used_when_first_has_no_containers():
    html = """
    <div class="ad-card">
      <img data-src="//cdn.example.com/axio.jpg"/>
      <h3><a href="/en/ad/axio">Toyota Axio 2016 Silver</a></h3>
      <span class="price">৳ 15,50,000</span>
      <span class="location">Uttara</span>
    </div>"""
    listings = extract(html, BIKROY.strategies, platform="Bikroy", base_url=BASE)

    assert len(listings) == 1
    assert listings[0].extraction.strategy_name == "Alternative Layout"
    assert listings[0].image_url == "https://cdn.example.com/axio.jpg"
    assert listings[0].specs.color == "Silver"
    assert listings[0].specs.location == "Uttara"


def test_heuristic_scan_when_no_strategy_matches():
    """Plain blocks with a car keyword and a price token are still found."""
    html = """
    <section>
      <h3>Toyota Axio 2016 G Edition</h3>
      <p>Well maintained, 45,000 km, price Tk 15,50,000 negotiable, call now</p>
    </section>
    <section>
      <h3>iPhone 13 Pro Max 256GB</h3>
      <p>Price Tk 95,000, brand new, original box included with charger</p>
    </section>"""
    listings = extract(html, BIKROY.strategies, platform="Bikroy", base_url=BASE)

    assert len(listings) == 1
    car = listings[0]
    assert car.title == "Toyota Axio 2016 G Edition"
    assert car.price_text == "Tk 15,50,000"
    assert car.specs.mileage_km == 45000
    assert car.extraction.strategy_name == HEURISTIC_STRATEGY.name
    assert car.extraction.confidence == "medium"
    assert car.link == BASE


def heuristic_block(year, length):
    """An <article> whose joined text is exactly ``length`` characters long."""
    title = f"Toyota Corolla {year}"
    body = "Tk 1,190,000 " + "x" * (length - len(title) - 1 - 13)
    block = f"<article><h3>{title}</h3><p>{body}</p></article>"
    assert len(f"{title} {body}") == length
    return block


def test_heuristic_text_length_bounds():
    """Only blocks between 50 and 1000 characters are scanned."""
    html = "".join([
        heuristic_block(2011, 49),
        heuristic_block(2012, 50),
        heuristic_block(2013, 1000),
        heuristic_block(2014, 1001),
    ])
    listings = extract(html, BIKROY.strategies, platform="Bikroy", base_url=BASE)

    assert [l.title for l in listings] == ["Toyota Corolla 2012", "Toyota Corolla 2013"]
    assert all(l.extraction.strategy_name == HEURISTIC_STRATEGY.name for l in listings)


def test_heuristic_picks_largest_price():
    html = """
    <article>
      <h3>Toyota Corolla X 2004</h3>
      <p>Tk 15,000 deposit to book, full price Tk 1,190,000 negotiable in Dhaka</p>
    </article>"""
    listings = extract(html, BIKROY.strategies, platform="Bikroy", base_url=BASE)

    assert len(listings) == 1
    assert listings[0].price_text == "Tk 1,190,000"
    assert listings[0].extraction.field_confidence["price"] == "medium"


def test_five_character_title_is_kept():
    listings = extract(page(bikroy_card(1, title="Swift", price="Tk 1,200,000")), BIKROY.strategies, platform="Bikroy", base_url=BASE)

    assert [l.title for l in listings] == ["Swift"]
    assert listings[0].extraction.field_confidence["title"] == "high"


def test_per_page_cap():
    cards = [bikroy_card(i, title=f"Toyota Corolla {2000 + i % 20} unit {i}") for i in range(40)]
    listings = extract(page(*cards), BIKROY.strategies, platform="Bikroy", base_url=BASE, max_results=30)
    assert len(listings) == 30


def test_elements_without_price_or_car_are_skipped():
    html = page(
        bikroy_card(1, price="Call for price"),
        bikroy_card(2, title="Samsung Galaxy S21 Ultra", price="Tk 85,000"),
        bikroy_card(3),
    )
    listings = extract(html, BIKROY.strategies, platform="Bikroy", base_url=BASE)
    assert [l.link for l in listings] == ["https://bikroy.com/en/ad/car-3"]


def test_empty_page():
    assert extract("", BIKROY.strategies, platform="Bikroy", base_url=BASE) == []
    assert extract("<html><body></body></html>", BIKROY.strategies, platform="Bikroy", base_url=BASE) == []


def test_car_listing_classifier():
    assert is_car_listing("Toyota Corolla 2004", "")
    assert is_car_listing("Honda Civic", "Honda Civic Tk 2,800,000")
    assert is_car_listing("Nissan X-Trail", "Nissan X-Trail 2.0 model")
    assert not is_car_listing("Toyota Corolla", "Toyota Corolla for sale")
    assert not is_car_listing("Gaming laptop 2021", "Gaming laptop 2021 Tk 90,000")

import os

from PIL import Image

from readlater.pipelines.images import ImagePipeline
from readlater.utils import url_hash


def _pipeline(tmp_path, config, fetcher):
    return ImagePipeline(str(tmp_path / "assets"), config.images, fetcher=fetcher)


def test_download_resizes_to_webp(tmp_path, config, image_bytes):
    raw = image_bytes((1600, 1200))
    calls = []

    def fetcher(url):
        calls.append(url)
        return raw

    pipeline = _pipeline(tmp_path, config, fetcher)
    url = "https://example.com/photo.png"
    filename = pipeline.download_and_optimize(url)

    assert filename == f"{url_hash(url)}.webp"
    assert calls == [url]
    with Image.open(pipeline.asset_path(filename)) as image:
        assert image.format == "WEBP"
        assert image.size == (800, 600)
    assert pipeline.public_path(filename) == f"/assets/{filename}"


def test_small_image_is_not_upscaled(tmp_path, config, image_bytes):
    pipeline = _pipeline(tmp_path, config, lambda url: image_bytes((300, 200)))
    filename = pipeline.download_and_optimize("https://example.com/small.png")
    with Image.open(pipeline.asset_path(filename)) as image:
        assert image.size == (300, 200)


def test_aspect_ratio_is_kept(tmp_path, config, image_bytes):
    pipeline = _pipeline(tmp_path, config, lambda url: image_bytes((1000, 2000)))
    filename = pipeline.download_and_optimize("https://example.com/tall.png")
    with Image.open(pipeline.asset_path(filename)) as image:
        assert image.size == (300, 600)


def test_same_url_maps_to_same_file(tmp_path, config, image_bytes):
    calls = []

    def fetcher(url):
        calls.append(url)
        return image_bytes((100, 100))

    pipeline = _pipeline(tmp_path, config, fetcher)
    first = pipeline.download_and_optimize("https://example.com/a.png")
    second = pipeline.download_and_optimize("https://example.com/a.png")
    assert first == second
    assert len(calls) == 1
    assert os.listdir(tmp_path / "assets") == [first]


def test_fetch_failure_returns_none(tmp_path, config):
    def fetcher(url):
        raise OSError("connection refused")

    pipeline = _pipeline(tmp_path, config, fetcher)
    assert pipeline.download_and_optimize("https://example.com/missing.png") is None
    assert not (tmp_path / "assets").exists()


def test_undecodable_image_returns_none(tmp_path, config):
    pipeline = _pipeline(tmp_path, config, lambda url: b"<html>not an image</html>")
    assert pipeline.download_and_optimize("https://example.com/fake.png") is None


def test_non_http_urls_are_skipped(tmp_path, config):
    def fetcher(url):
        raise AssertionError("should not fetch")

    pipeline = _pipeline(tmp_path, config, fetcher)
    assert pipeline.download_and_optimize("data:image/png;base64,AAAA") is None
    assert pipeline.download_and_optimize("") is None

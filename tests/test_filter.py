"""Test candidate filtering by extension"""

from spot_seeker.matching.filter import filter_eligible, get_extension, split_path


class TestPathHelpers:
    """Test remote path helpers"""

    def test_split_path_both_separators(self):
        """Windows and POSIX separators are both recognized"""
        assert split_path("@@music\\Artist/Album\\01.mp3") == ["@@music", "Artist", "Album", "01.mp3"]
        assert split_path("file.mp3") == ["file.mp3"]

    def test_get_extension(self):
        """Extension is lowercased and taken from the last segment only"""
        assert get_extension("Music\\Artist - Title.MP3") == "mp3"
        assert get_extension("a/b/c.tar.flac") == "flac"
        assert get_extension("Some.Folder\\README") == ""
        assert get_extension("") == ""


class TestFilterEligible:
    """Test filter_eligible()"""

    def test_keeps_target_extension(self, make_candidate):
        """Only candidates with the target extension survive"""
        mp3 = make_candidate("Artist - Title.mp3")
        wav = make_candidate("Artist - Title.wav")
        upper = make_candidate("ARTIST - TITLE.MP3")

        assert filter_eligible([mp3, wav, upper], "mp3") == [mp3, upper]

    def test_preserves_order_and_duplicates(self, make_candidate):
        """Input order is kept and nothing is deduplicated"""
        a = make_candidate("b.mp3", owner="u1")
        b = make_candidate("a.mp3", owner="u2")
        c = make_candidate("b.mp3", owner="u1")

        assert filter_eligible([a, b, c]) == [a, b, c]

    def test_empty_path_excluded(self, make_candidate):
        assert filter_eligible([make_candidate("")]) == []

    def test_locked_excluded(self, make_candidate):
        """A file the peer will not serve is never eligible"""
        open_file = make_candidate("Artist - Title.mp3")
        locked = make_candidate("Artist - Title.mp3", locked=True)

        assert filter_eligible([locked, open_file]) == [open_file]

    def test_extension_argument_normalized(self, make_candidate):
        """A leading dot or uppercase target is accepted"""
        flac = make_candidate("Artist - Title.flac")

        assert filter_eligible([flac], ".FLAC") == [flac]

    def test_empty_input(self):
        assert filter_eligible([]) == []

"""Tests for the Gemfile.lock resolver."""

import pytest

from registry.rubygems.scan import (
    GemfileLockResolver,
    ManifestResolver,
    ResolvedSpec,
    parse_gemfile_groups,
    parse_gemfile_lock,
    scan_source,
    to_groups,
)
from versioning.models import Group, Technology

GEMFILE = '''source "https://rubygems.org"

gem "rails", "~> 7.1"
gem "nokogiri"
gem "local_engine", path: "engines/local_engine"
gem "pry", group: :development

group :development, :test do
  gem "rspec-rails"
  platforms :mri do
    gem "byebug"
  end
end

gem "rubocop", groups: [:development, :lint], require: false
'''

GEMFILE_LOCK = '''GIT
  remote: https://github.com/rails/rails.git
  revision: 0123456789abcdef
  branch: main
  specs:
    rails (7.1.0)
      actionpack (= 7.1.0)

PATH
  remote: engines/local_engine
  specs:
    local_engine (0.1.0)

GEM
  remote: https://rubygems.org/
  specs:
    actionpack (7.1.0)
      rack (>= 2.2.4)
    byebug (11.1.3)
    nokogiri (1.15.4-x86_64-linux)
      racc (~> 1.4)
    pry (0.14.2)
    rack (3.0.8)
    rspec-rails (6.0.3)
    rubocop (1.56.0)

PLATFORMS
  x86_64-linux

DEPENDENCIES
  byebug
  local_engine!
  nokogiri
  pry
  rails!
  rspec-rails (~> 6.0)
  rubocop

BUNDLED WITH
   2.4.10
'''


def _project(tmp_path):
    (tmp_path / "Gemfile").write_text(GEMFILE)
    (tmp_path / "Gemfile.lock").write_text(GEMFILE_LOCK)
    return str(tmp_path)


class TestGemfileLockParsing:
    """Lock file sections and direct dependencies."""

    def test_sources_and_direct_dependencies(self):
        sources, direct = parse_gemfile_lock(GEMFILE_LOCK)
        assert [s.kind for s in sources] == ["GIT", "PATH", "GEM"]
        assert sources[0].remote == "https://github.com/rails/rails.git"
        assert sources[2].specs["nokogiri"] == "1.15.4"
        assert "racc" not in sources[2].specs
        assert direct == ["byebug", "local_engine", "nokogiri", "pry", "rails", "rspec-rails", "rubocop"]

    def test_gemfile_groups(self):
        groups = parse_gemfile_groups(GEMFILE)
        assert groups["rails"] == {"default"}
        assert groups["pry"] == {"development"}
        assert groups["rspec-rails"] == {"development", "test"}
        assert groups["byebug"] == {"development", "test"}
        assert groups["rubocop"] == {"development", "lint"}

    def test_conditionals_inside_group_keep_the_group(self):
        """An ``if ... end`` closes itself, not the surrounding group."""
        gemfile = '''group :development do
  if ENV["X"]
    gem "a"
  end
  unless ENV["Y"]
    gem "c"
  end
  gem "d" if ENV["Z"]
  gem "b"
end
gem "e"
'''
        groups = parse_gemfile_groups(gemfile)
        assert groups["a"] == {"development"}
        assert groups["b"] == {"development"}
        assert groups["c"] == {"development"}
        assert groups["d"] == {"development"}
        assert groups["e"] == {"default"}

    def test_case_and_one_line_if_inside_group(self):
        gemfile = '''group :test do
  platform = case RUBY_PLATFORM
  when /darwin/ then "mac"
  else "other"
  end
  if platform == "mac" then puts "mac" end
  gem "rspec"
end
'''
        assert parse_gemfile_groups(gemfile)["rspec"] == {"test"}

    def test_to_groups(self):
        assert to_groups(frozenset({"default"})) == {Group.DEFAULT}
        assert to_groups(frozenset()) == {Group.DEFAULT}
        assert to_groups(frozenset({"test"})) == {Group.DEVELOPMENT}


class TestGemfileLockResolver:
    """Direct, registry-hosted gems with their Bundler groups."""

    def test_resolve_manifest_skips_path_gems(self, tmp_path):
        specs = GemfileLockResolver().resolve_manifest(_project(tmp_path))
        names = [s.name for s in specs]
        assert "local_engine" not in names
        assert "rack" not in names
        assert ResolvedSpec("nokogiri", "1.15.4", frozenset({"default"})) in specs

    def test_git_gems_from_remote_hosts_are_kept(self, tmp_path):
        specs = GemfileLockResolver().resolve_manifest(_project(tmp_path))
        assert ResolvedSpec("rails", "7.1.0", frozenset({"default"})) in specs

    def test_declared_names(self, tmp_path):
        names = GemfileLockResolver().declared_names(_project(tmp_path))
        assert "local_engine" in names
        assert "rails" in names

    def test_scan_source_builds_dependencies(self, tmp_path):
        deps = {d.name: d for d in scan_source(_project(tmp_path))}
        assert deps["pry"].technology == Technology.RUBY
        assert deps["pry"].groups == {Group.DEVELOPMENT}
        assert deps["rails"].groups == {Group.DEFAULT}
        assert deps["rspec-rails"].resolved_version == "6.0.3"

    def test_scan_source_with_custom_resolver(self, tmp_path):
        class StaticResolver(ManifestResolver):
            def resolve_manifest(self, dir_name):
                return [ResolvedSpec("rake", "13.0.6", frozenset({"default"}))]

        deps = scan_source(str(tmp_path), resolver=StaticResolver())
        assert [(d.name, d.resolved_version) for d in deps] == [("rake", "13.0.6")]

    def test_missing_lock_file_exits(self, tmp_path):
        (tmp_path / "Gemfile").write_text(GEMFILE)
        with pytest.raises(SystemExit) as excinfo:
            scan_source(str(tmp_path))
        assert excinfo.value.code == 1
